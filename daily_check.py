# daily_check.py
"""
Daily shortage check, run once per day by an external scheduler:
fetch CIMA shortages, diff the subscriber's catalog against yesterday's
snapshot, email the report and store today's snapshot.
"""
import datetime
import sqlite3
from typing import Dict, List, Optional

from cimawatch import storage
from cimawatch.catalog import matched_by_code
from cimawatch.diff import build_snapshot, diff_snapshot
from cimawatch.emailer import send_report
from cimawatch.logger import get_logger
from cimawatch.models import SNAPSHOT_RETENTION_DAYS, ShortageRecord, Snapshot, Subscription
from cimawatch.report import ReportMeta, compose, today_local
from cimawatch.report_html import build_html_report, build_plaintext_report
from fetchers import FeedError, fetch_all_shortages

logger = get_logger(__name__)


def _load_subscription() -> Optional[Subscription]:
    sub = storage.load_latest_subscription()
    if sub is None:
        logger.info("No subscription configured; skipping.")
        return None
    if not sub.emails:
        logger.info("No email recipients configured; skipping.")
        return None
    if not sub.catalog_codes:
        logger.info("No catalog codes configured; skipping.")
        return None
    return sub


def _load_previous_snapshot(subscription_id: int) -> Optional[Snapshot]:
    try:
        return storage.load_latest_snapshot(subscription_id)
    except (sqlite3.Error, ValueError) as e:
        logger.error("Failed to read previous snapshot; treating as first run: %s", e)
        return None


def _to_records(items: List[dict]) -> List[ShortageRecord]:
    return [ShortageRecord.from_api(it) for it in items]


def run_once(today: datetime.date | None = None) -> int:
    storage.ensure_db()
    today = today or today_local()
    logger.info("=== CIMA Watch daily check %s ===", today.isoformat())

    sub = _load_subscription()
    if sub is None:
        return 0

    logger.info(
        "Subscription: %s, %d recipients, %d catalog codes",
        sub.hospital_name, len(sub.emails), len(sub.catalog_codes),
    )
    catalog = frozenset(sub.catalog_codes)

    try:
        feed = fetch_all_shortages()
    except FeedError as e:
        logger.error("Shortage feed unavailable; aborting run: %s", e)
        return 1

    current: Dict[str, ShortageRecord] = matched_by_code(_to_records(feed.items), catalog)
    logger.info("Current shortages matching catalog: %d", len(current))

    previous = _load_previous_snapshot(sub.id)
    logger.info(
        "Previous snapshot had %d shortage codes",
        len(previous.present_codes) if previous else 0,
    )

    diff = diff_snapshot(current, previous)
    logger.info(
        "New: %d, Continuing: %d, Resolved: %d",
        len(diff.new_items), len(diff.continuing_items), len(diff.resolved_items),
    )

    report = compose(diff, ReportMeta(hospital_name=sub.hospital_name, report_date=today))
    html_body = build_html_report(report)
    text_body = build_plaintext_report(report)
    send_report(report.subject, html_body, text_body, sub.emails)

    snapshot = build_snapshot(sub.id, today, current)
    try:
        storage.save_snapshot(snapshot)
    except sqlite3.Error as e:
        logger.error("Error saving snapshot: %s", e)

    try:
        storage.delete_snapshots_older_than(SNAPSHOT_RETENTION_DAYS, today=today)
    except sqlite3.Error as e:
        logger.error("Error pruning old snapshots: %s", e)

    logger.info("=== Done ===")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(run_once())
    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal CIMA Watch error: %s", e)
        raise SystemExit(2)
