# cimawatch/models.py
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .codes import normalize_code

# Upstream encodes "no estimated end" as a far-future ffin (e.g. year 4001).
INDEFINITE_END_YEAR = 2040

SNAPSHOT_RETENTION_DAYS = 30

DEFAULT_HOSPITAL_NAME = "Hospital"


def _parse_iso_ms(value: Any) -> Optional[int]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return int(dt.timestamp() * 1000)


def parse_epoch_ms(value: Any) -> Optional[int]:
    """
    Epoch milliseconds from a number, a numeric string or an ISO-8601
    date/datetime string (naive values are taken as UTC); otherwise None.
    """
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        ms = int(float(value))
    except (TypeError, ValueError, OverflowError):
        ms = _parse_iso_ms(value)
    return ms or None


def parse_end_date(value: Any) -> Optional[int]:
    """
    Convert the feed's ffin to an explicit end date, or None for an
    indefinite end. Years past INDEFINITE_END_YEAR are the upstream sentinel.
    A value that is neither a timestamp nor an ISO date carries no usable
    end either and is also returned as None.
    """
    ms = parse_epoch_ms(value)
    if ms is None:
        return None
    try:
        year = datetime.datetime.fromtimestamp(ms / 1000, tz=datetime.timezone.utc).year
    except (OverflowError, OSError, ValueError):
        return None
    if year > INDEFINITE_END_YEAR:
        return None
    return ms


def parse_active(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "n")
    return bool(value)


@dataclass
class ShortageRecord:
    """
    One entry of the CIMA shortage feed (psuministro).
    end_date_ms is None whenever the shortage has no estimated end.
    """
    code: Any
    name: str = ""
    active: Optional[bool] = None
    observation: str = ""
    start_date_ms: Optional[int] = None
    end_date_ms: Optional[int] = None
    registry_number: Any = None

    @property
    def normalized_code(self) -> str:
        return normalize_code(self.code)

    @property
    def indefinite_end(self) -> bool:
        return self.end_date_ms is None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ShortageRecord":
        """Build from a feed row or a reduced snapshot payload."""
        cn = raw.get("cn")
        nregistro = raw.get("nregistro")
        return cls(
            code=cn if cn not in (None, "") else nregistro,
            name=str(raw.get("nombre") or "").strip(),
            active=parse_active(raw.get("activo")),
            observation=str(raw.get("observ") or ""),
            start_date_ms=parse_epoch_ms(raw.get("fini")),
            end_date_ms=parse_end_date(raw.get("ffin")),
            registry_number=nregistro,
        )

    def to_reduced(self) -> Dict[str, Any]:
        """Stable subset kept in snapshots to redisplay a resolved item."""
        return {
            "cn": self.code,
            "nregistro": self.registry_number,
            "nombre": self.name,
            "observ": self.observation,
            "activo": self.active,
            "fini": self.start_date_ms,
            "ffin": self.end_date_ms,
        }


@dataclass(frozen=True)
class Snapshot:
    subscription_id: int
    snapshot_date: datetime.date
    present_codes: Tuple[str, ...] = ()
    payload_by_code: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class DiffResult:
    new_items: List[ShortageRecord] = field(default_factory=list)
    continuing_items: List[ShortageRecord] = field(default_factory=list)
    resolved_items: List[ShortageRecord] = field(default_factory=list)


@dataclass
class Subscription:
    emails: List[str]
    catalog_codes: List[str]
    hospital_name: str = DEFAULT_HOSPITAL_NAME
    id: Optional[int] = None
