# cimawatch/storage.py
import datetime
import json
import os
import sqlite3
from typing import Optional

import pytz

from .logger import DATA_DIR, get_logger
from .models import (
    DEFAULT_HOSPITAL_NAME,
    SNAPSHOT_RETENTION_DAYS,
    Snapshot,
    Subscription,
)

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_DIR, "cima_watch.sqlite3"))


def _connect():
    directory = os.path.dirname(DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return sqlite3.connect(DB_PATH)


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def ensure_db():
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS subscriptions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                emails TEXT,          -- JSON list
                catalog_cns TEXT,     -- JSON list of normalized codes
                hospital_name TEXT,
                created_at TEXT,
                updated_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subscription_id INTEGER,
                snapshot_date TEXT,   -- YYYY-MM-DD
                shortage_cns TEXT,    -- JSON list, feed order
                shortage_data TEXT,   -- JSON object code -> reduced record
                created_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_snapshots_sub_date
            ON snapshots (subscription_id, snapshot_date)
        """
        )
        con.commit()


def load_latest_subscription() -> Optional[Subscription]:
    """
    Return the single active subscription (first row found), or None.
    """
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT id, emails, catalog_cns, hospital_name
            FROM subscriptions
            ORDER BY id
            LIMIT 1
        """
        )
        row = cur.fetchone()

    if not row:
        return None

    sub_id, emails, catalog_cns, hospital_name = row
    return Subscription(
        id=sub_id,
        emails=json.loads(emails or "[]"),
        catalog_codes=json.loads(catalog_cns or "[]"),
        hospital_name=hospital_name or DEFAULT_HOSPITAL_NAME,
    )


def save_subscription(subscription: Subscription) -> Subscription:
    """
    Upsert the single subscription row: update the first row if one exists,
    insert otherwise. Returns the stored subscription with its id.
    """
    ts = now_utc_iso()
    emails = json.dumps(list(subscription.emails))
    catalog = json.dumps(list(subscription.catalog_codes))
    hospital = subscription.hospital_name or DEFAULT_HOSPITAL_NAME

    with _connect() as con:
        cur = con.cursor()
        cur.execute("SELECT id FROM subscriptions ORDER BY id LIMIT 1")
        row = cur.fetchone()
        if row:
            sub_id = row[0]
            cur.execute(
                """
                UPDATE subscriptions
                SET emails=?, catalog_cns=?, hospital_name=?, updated_at=?
                WHERE id=?
            """,
                (emails, catalog, hospital, ts, sub_id),
            )
        else:
            cur.execute(
                """
                INSERT INTO subscriptions (
                    emails, catalog_cns, hospital_name, created_at, updated_at
                )
                VALUES (?,?,?,?,?)
            """,
                (emails, catalog, hospital, ts, ts),
            )
            sub_id = cur.lastrowid
        con.commit()

    logger.info(
        "Saved subscription %s: %d recipients, %d catalog codes.",
        sub_id, len(subscription.emails), len(subscription.catalog_codes),
    )
    return Subscription(
        id=sub_id,
        emails=list(subscription.emails),
        catalog_codes=list(subscription.catalog_codes),
        hospital_name=hospital,
    )


def load_latest_snapshot(subscription_id: int) -> Optional[Snapshot]:
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT snapshot_date, shortage_cns, shortage_data
            FROM snapshots
            WHERE subscription_id=?
            ORDER BY snapshot_date DESC, id DESC
            LIMIT 1
        """,
            (subscription_id,),
        )
        row = cur.fetchone()

    if not row:
        return None

    snapshot_date, shortage_cns, shortage_data = row
    return Snapshot(
        subscription_id=subscription_id,
        snapshot_date=datetime.date.fromisoformat(snapshot_date),
        present_codes=tuple(json.loads(shortage_cns or "[]")),
        payload_by_code=json.loads(shortage_data or "{}"),
    )


def save_snapshot(snapshot: Snapshot):
    with _connect() as con:
        cur = con.cursor()
        cur.execute(
            """
            INSERT INTO snapshots (
                subscription_id, snapshot_date, shortage_cns, shortage_data, created_at
            )
            VALUES (?,?,?,?,?)
        """,
            (
                snapshot.subscription_id,
                snapshot.snapshot_date.isoformat(),
                json.dumps(list(snapshot.present_codes)),
                json.dumps(snapshot.payload_by_code, ensure_ascii=False),
                now_utc_iso(),
            ),
        )
        con.commit()
    logger.info(
        "Saved snapshot %s for subscription %s (%d codes).",
        snapshot.snapshot_date, snapshot.subscription_id, len(snapshot.present_codes),
    )


def delete_snapshots_older_than(
    days: int = SNAPSHOT_RETENTION_DAYS, today: datetime.date | None = None
) -> int:
    today = today or datetime.datetime.now(tz=pytz.UTC).date()
    cutoff = (today - datetime.timedelta(days=days)).isoformat()
    with _connect() as con:
        cur = con.cursor()
        cur.execute("DELETE FROM snapshots WHERE snapshot_date < ?", (cutoff,))
        deleted = cur.rowcount
        con.commit()
    if deleted:
        logger.info("Deleted %d snapshots older than %s.", deleted, cutoff)
    return deleted
