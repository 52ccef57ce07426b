# cimawatch/diff.py
import datetime
from typing import Dict, Optional

from .models import DiffResult, ShortageRecord, Snapshot


def _resolved_record(code: str, payload: Optional[dict]) -> ShortageRecord:
    # Snapshots written by older schemas may lack the payload.
    if not payload:
        return ShortageRecord(code=code, name=f"CN: {code}")
    return ShortageRecord.from_api(payload)


def diff_snapshot(
    today: Dict[str, ShortageRecord], previous: Optional[Snapshot]
) -> DiffResult:
    """
    Compute new, continuing and resolved shortages between today's
    catalog-matched records and the previous snapshot.
    - today: mapping normalized code -> ShortageRecord (catalog subset only)
    - previous: last stored Snapshot, or None on the first run
    New and continuing follow today's order; resolved follows the snapshot's.
    """
    if previous is None:
        old_codes: tuple = ()
        old_payloads: Dict[str, dict] = {}
    else:
        old_codes = previous.present_codes
        old_payloads = previous.payload_by_code

    old_set = set(old_codes)

    new_items = [rec for code, rec in today.items() if code not in old_set]
    continuing = [rec for code, rec in today.items() if code in old_set]
    resolved = [
        _resolved_record(code, old_payloads.get(code))
        for code in dict.fromkeys(old_codes)
        if code not in today
    ]

    return DiffResult(
        new_items=new_items,
        continuing_items=continuing,
        resolved_items=resolved,
    )


def build_snapshot(
    subscription_id: int,
    snapshot_date: datetime.date,
    today: Dict[str, ShortageRecord],
) -> Snapshot:
    return Snapshot(
        subscription_id=subscription_id,
        snapshot_date=snapshot_date,
        present_codes=tuple(today.keys()),
        payload_by_code={code: rec.to_reduced() for code, rec in today.items()},
    )
