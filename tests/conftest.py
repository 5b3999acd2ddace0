"""
Pytest configuration and shared fixtures.

Provides query results with known outliers, a controllable clock, an
in-memory cache and a recording alert notifier for unit and integration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import List

import pandas as pd

from bi_sentinel.alerts.cache import InMemoryCacheService
from bi_sentinel.alerts.manager import AlertNotifier
from bi_sentinel.alerts.schema import AnomalyAlert
from bi_sentinel.data.schema import ColumnMetadata, QueryResult


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier(AlertNotifier):
    """Notifier that keeps every alert it is handed."""

    def __init__(self):
        self.alerts: List[AnomalyAlert] = []

    async def notify(self, alert: AnomalyAlert) -> None:
        self.alerts.append(alert)


class FailingNotifier(AlertNotifier):
    """Notifier whose delivery channel is down."""

    async def notify(self, alert: AnomalyAlert) -> None:
        raise ConnectionError("notification channel unavailable")


# Five values repeated six times, then one extreme value at row 30.
# mean ~14.84, population std ~15.61, z(100) ~5.45; IQR fences are [8, 16].
BASELINE_AMOUNTS = [10.0, 11.0, 12.0, 13.0, 14.0] * 6
OUTLIER_AMOUNT = 100.0
OUTLIER_ROW = 30


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a fixed, manually advanced UTC clock."""
    return FakeClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache(clock) -> InMemoryCacheService:
    """Fixture providing an in-memory cache driven by the fake clock."""
    return InMemoryCacheService(clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def sales_result() -> QueryResult:
    """
    Fixture providing a 31-row result with one numeric outlier.

    Columns:
        - Region: text
        - Amount: decimal(18,2), outlier 100.0 at row 30
    """
    regions = ["North", "South", "East", "West", "Central"]
    rows = [[regions[i % len(regions)], amount] for i, amount in enumerate(BASELINE_AMOUNTS)]
    rows.append(["North", OUTLIER_AMOUNT])
    return QueryResult(
        columns=[
            ColumnMetadata(name="Region", data_type="nvarchar(50)"),
            ColumnMetadata(name="Amount", data_type="decimal(18,2)"),
        ],
        data=rows,
    )


@pytest.fixture
def revenue_result() -> QueryResult:
    """
    Fixture providing a small monthly revenue result.

    Rows 1 and 3 hold negative revenue (row 3 as text); row 2 is null.
    """
    return QueryResult(
        columns=[
            ColumnMetadata(name="Month", data_type="varchar(10)"),
            ColumnMetadata(name="TotalRevenue", data_type="money"),
        ],
        data=[
            ["2025-01", 1200.0],
            ["2025-02", -50.0],
            ["2025-03", None],
            ["2025-04", "-10"],
            ["2025-05", 900.0],
        ],
    )


@pytest.fixture
def deposits_dataframe() -> pd.DataFrame:
    """
    Fixture providing deposits as a pandas DataFrame.

    The amount column follows the sales pattern, with one missing value and
    one extreme deposit at the last row.
    """
    amounts = [float(a * 100) for a in BASELINE_AMOUNTS] + [float("nan"), 25000.0]
    return pd.DataFrame(
        {
            "account": [f"ACC-{i:04d}" for i in range(len(amounts))],
            "deposit_amount": amounts,
            "booked_at": pd.date_range("2025-02-01", periods=len(amounts), freq="h"),
        }
    )


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
