"""Pytest fixtures: isolated DB per test, FastAPI TestClient."""
import os
from datetime import date

import pytest
from fastapi.testclient import TestClient

from studystreak.models import DailyActivityRecord

TODAY = date(2026, 3, 18)


@pytest.fixture
def db(tmp_path):
    db_path = str(tmp_path / "test.db")
    os.environ["STUDYSTREAK_DB"] = db_path
    from studystreak import database
    database.init_db()
    yield database
    os.environ.pop("STUDYSTREAK_DB", None)


@pytest.fixture
def client(db):
    from studystreak.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_records():
    """Build records from {days_before_today: minutes}."""
    from datetime import timedelta

    def _make(minutes_by_offset, today=TODAY):
        return [
            DailyActivityRecord(date=today - timedelta(days=offset), minutes=minutes, session_count=1)
            for offset, minutes in sorted(minutes_by_offset.items(), reverse=True)
        ]
    return _make
