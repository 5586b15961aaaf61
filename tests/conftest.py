# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from symptom_trends.core.dispatcher import ComputeDispatcher
from symptom_trends.temporal.models import Point


FIXED_NOW = datetime(2025, 1, 20, 12, 0, tzinfo=timezone.utc)

# Severity-style scores for 14 consecutive days, trending down
IMPROVING_VALUES = [7, 6, 7, 5, 6, 4, 5, 3, 4, 3, 2, 3, 2, 1]


def make_daily_records(
    values: List[float],
    start: date = date(2025, 1, 1),
    field: str = "overall_health",
    user_id: str = "user-123",
) -> List[Dict[str, Any]]:
    """Build one daily record per value on consecutive days"""
    records = []
    for offset, value in enumerate(values):
        day = start + timedelta(days=offset)
        records.append({
            "id": f"entry-{offset}",
            "user_id": user_id,
            "date": day.isoformat(),
            field: value,
            "symptoms": [],
            "medications": [],
            "triggers": [],
        })
    return records


class FakeRecordStore:
    """In-memory record store honoring the date range filter"""

    def __init__(self, records: Optional[Dict[str, List[Dict[str, Any]]]] = None, fail: bool = False):
        self.records = records or {}
        self.fail = fail
        self.calls = []

    def get_records_by_date_range(self, user_id: str, start_date: str, end_date: str):
        self.calls.append((user_id, start_date, end_date))
        if self.fail:
            raise ConnectionError("record store offline")
        return [
            record for record in self.records.get(user_id, [])
            if start_date <= record["date"] <= end_date
        ]


class AsyncFakeRecordStore(FakeRecordStore):
    """Same store behind an async interface"""

    async def get_records_by_date_range(self, user_id: str, start_date: str, end_date: str):
        return FakeRecordStore.get_records_by_date_range(self, user_id, start_date, end_date)


@pytest.fixture
def fixed_clock():
    """Clock pinned to FIXED_NOW"""
    return lambda: FIXED_NOW


@pytest.fixture
def improving_records():
    """14 daily records with a falling overall_health score"""
    return make_daily_records(IMPROVING_VALUES)


@pytest.fixture
def record_store(improving_records):
    """Record store holding the improving series for user-123"""
    return FakeRecordStore({"user-123": improving_records})


@pytest.fixture
def sync_dispatcher():
    """Dispatcher with no worker pool"""
    dispatcher = ComputeDispatcher(pool_size=0)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def linear_points():
    """Noise-free points on y = 2.5x - 3"""
    return [Point(x=float(x), y=2.5 * x - 3) for x in range(20)]


@pytest.fixture
def large_linear_points():
    """150 points on y = 0.5x + 1, enough to be sent to a worker"""
    return [Point(x=float(x), y=0.5 * x + 1) for x in range(150)]


@pytest.fixture
def record_factory():
    """make_daily_records as a fixture"""
    return make_daily_records


@pytest.fixture
def store_factory():
    """Build a sync or async fake record store"""
    def factory(records=None, fail=False, use_async=False):
        cls = AsyncFakeRecordStore if use_async else FakeRecordStore
        return cls(records, fail=fail)
    return factory
