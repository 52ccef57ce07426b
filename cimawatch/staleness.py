# cimawatch/staleness.py
import time

from .models import ShortageRecord

# Fixed 365-day year, no leap adjustment.
STALE_AFTER_MS = 365 * 24 * 60 * 60 * 1000


def now_epoch_ms() -> int:
    return int(time.time() * 1000)


def is_stale(record: ShortageRecord, now_ms: int | None = None) -> bool:
    """
    True for shortages open for more than a year with no estimated end.
    Used to hide them from the working view only; snapshots and diffs keep
    tracking them so a later resolution is still reported.
    """
    if record.start_date_ms is None:
        return False
    if now_ms is None:
        now_ms = now_epoch_ms()
    if now_ms - record.start_date_ms <= STALE_AFTER_MS:
        return False
    return record.indefinite_end
