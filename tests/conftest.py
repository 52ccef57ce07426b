import os
import tempfile

# Keep logging and sqlite out of /data before any project module is imported.
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="cima_watch_test_"))

import pytest

from cimawatch import storage
from cimawatch.models import ShortageRecord


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "DB_PATH", str(tmp_path / "state.sqlite3"))
    storage.ensure_db()
    return storage


def make_record(code, name="", observation="", active=None, start=None, end=None) -> ShortageRecord:
    return ShortageRecord(
        code=code,
        name=name,
        active=active,
        observation=observation,
        start_date_ms=start,
        end_date_ms=end,
    )
