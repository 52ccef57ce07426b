import datetime
import sqlite3
from unittest.mock import patch

import pytest

import daily_check
from cimawatch.models import Subscription
from fetchers import FeedError, FeedResult


def _feed(*rows) -> FeedResult:
    return FeedResult(total_count=len(rows), items=list(rows))


@pytest.fixture
def mailer():
    with patch("daily_check.send_report") as send:
        send.side_effect = lambda subject, html, text, recipients: {r: True for r in recipients}
        yield send


def _subscribe(db, emails=("a@h.es", "b@h.es"), codes=("222222", "333333", "111111")):
    return db.save_subscription(Subscription(emails=list(emails), catalog_codes=list(codes), hospital_name="H"))


def test_no_subscription_is_a_noop(db, mailer) -> None:
    with patch("daily_check.fetch_all_shortages") as fetch:
        assert daily_check.run_once(datetime.date(2026, 3, 1)) == 0
    fetch.assert_not_called()
    mailer.assert_not_called()


def test_empty_recipients_is_a_noop(db, mailer) -> None:
    _subscribe(db, emails=())
    with patch("daily_check.fetch_all_shortages") as fetch:
        assert daily_check.run_once(datetime.date(2026, 3, 1)) == 0
    fetch.assert_not_called()


def test_two_day_run_reports_new_continuing_and_resolved(db, mailer) -> None:
    sub = _subscribe(db)
    day1 = datetime.date(2026, 3, 1)
    day2 = datetime.date(2026, 3, 2)

    feed1 = _feed(
        {"cn": "111111", "nombre": "RESUELTO", "activo": True},
        {"cn": "222-222", "nombre": "SIGUE", "activo": True},
        {"cn": "999999", "nombre": "FUERA DE CATALOGO"},
    )
    with patch("daily_check.fetch_all_shortages", return_value=feed1):
        assert daily_check.run_once(day1) == 0

    subject1 = mailer.call_args.args[0]
    assert subject1 == "🚨 CIMA Watch — 2 nuevos desabastecimientos (01/03/2026)"
    assert mailer.call_args.args[3] == ["a@h.es", "b@h.es"]
    assert db.load_latest_snapshot(sub.id).present_codes == ("111111", "222222")

    feed2 = _feed(
        {"cn": "222222", "nombre": "SIGUE", "activo": True},
        {"cn": "333333", "nombre": "NUEVO", "observ": "Medicamento extranjero"},
    )
    with patch("daily_check.fetch_all_shortages", return_value=feed2), \
         patch("daily_check.compose", wraps=daily_check.compose) as compose:
        assert daily_check.run_once(day2) == 0

    diff = compose.call_args.args[0]
    assert [r.name for r in diff.new_items] == ["NUEVO"]
    assert [r.name for r in diff.continuing_items] == ["SIGUE"]
    assert [r.name for r in diff.resolved_items] == ["RESUELTO"]
    assert mailer.call_args.args[0] == "🚨 CIMA Watch — 1 nuevo desabastecimiento (02/03/2026)"

    snap = db.load_latest_snapshot(sub.id)
    assert snap.snapshot_date == day2
    assert snap.present_codes == ("222222", "333333")


def test_feed_failure_aborts_without_mail(db, mailer) -> None:
    _subscribe(db)
    with patch("daily_check.fetch_all_shortages", side_effect=FeedError("down")):
        assert daily_check.run_once(datetime.date(2026, 3, 1)) == 1
    mailer.assert_not_called()


def test_snapshot_read_failure_is_treated_as_first_run(db, mailer) -> None:
    _subscribe(db)
    with patch("daily_check.fetch_all_shortages", return_value=_feed({"cn": "111111"})), \
         patch("daily_check.storage.load_latest_snapshot", side_effect=sqlite3.OperationalError("boom")):
        assert daily_check.run_once(datetime.date(2026, 3, 1)) == 0
    assert mailer.call_args.args[0].startswith("🚨")


def test_snapshot_write_failure_still_sends_mail(db, mailer) -> None:
    _subscribe(db)
    with patch("daily_check.fetch_all_shortages", return_value=_feed()), \
         patch("daily_check.storage.save_snapshot", side_effect=sqlite3.OperationalError("disk full")):
        assert daily_check.run_once(datetime.date(2026, 3, 1)) == 0
    mailer.assert_called_once()
    assert mailer.call_args.args[0] == "📊 CIMA Watch — Informe diario (01/03/2026)"
