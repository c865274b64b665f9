"""
Pytest configuration and shared fixtures.

Provides deterministic clocks, in-memory KPI sources, a recording email port
and anomaly builders for unit and integration tests.
"""

import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
import pytest

from adsentinel.anomaly.schema import (
    Anomaly,
    AnomalySeverity,
    AnomalyType,
    DetectionMethod,
    MetricName,
)
from adsentinel.data.ports import KPIReader
from adsentinel.data.schema import DateRange, KPISnapshot, MetricPoint
from backend.alerts.mailer import EmailPort
from backend.alerts.schema import EmailMessage, SendResult

# Ordinary trading day: no dated event window and no seasonal month.
ORDINARY_DAY = date(2025, 4, 15)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class SeriesKPIReader(KPIReader):
    """
    KPI reader fed with ready-made metric series.

    Each series ends on `end`, one value per day. latest_two returns two
    placeholder snapshots dated on the last two days.
    """

    def __init__(self, series: Dict[Tuple[str, str], Sequence[float]], end: date):
        self._series = {
            (campaign, MetricName(metric)): [
                MetricPoint(date=end - timedelta(days=len(values) - 1 - i), value=v)
                for i, v in enumerate(values)
            ]
            for (campaign, metric), values in series.items()
        }
        self._end = end

    def series_for(self, campaign_id: str, metric: MetricName, date_range: DateRange) -> List[MetricPoint]:
        points = self._series.get((campaign_id, MetricName(metric)), [])
        return [p for p in points if date_range.contains(p.date)]

    def latest_two(self, campaign_id: str) -> List[KPISnapshot]:
        if not any(key[0] == campaign_id for key in self._series):
            return []
        return [
            KPISnapshot(campaign_id=campaign_id, date=self._end - timedelta(days=1)),
            KPISnapshot(campaign_id=campaign_id, date=self._end),
        ]


class RecordingEmailPort(EmailPort):
    """
    Email port that records messages instead of sending them.

    Behaviour switches:
    - fail_with: return a failed SendResult with this error
    - raise_with: raise this exception from send
    - delay: seconds to sleep before answering
    """

    def __init__(self):
        self.messages: List[EmailMessage] = []
        self.fail_with: Optional[str] = None
        self.raise_with: Optional[Exception] = None
        self.delay: float = 0.0
        self._lock = threading.Lock()

    def send(self, message: EmailMessage) -> SendResult:
        if self.delay:
            time.sleep(self.delay)
        if self.raise_with is not None:
            raise self.raise_with
        if self.fail_with is not None:
            return SendResult(success=False, error=self.fail_with)
        with self._lock:
            self.messages.append(message)
        return SendResult(success=True)


def build_anomaly(
    metric: MetricName = MetricName.CPA,
    severity: AnomalySeverity = AnomalySeverity.CRITICAL,
    campaign_id: str = "camp-1",
    change_percent: float = 60.0,
    detected_at: Optional[datetime] = None,
    z_score: Optional[float] = 3.5,
    anomaly_id: Optional[str] = None,
) -> Anomaly:
    detected_at = detected_at or datetime(2025, 4, 15, 9, 0, tzinfo=timezone.utc)
    previous = 100.0
    current = previous * (1 + change_percent / 100.0)
    return Anomaly(
        id=anomaly_id or f"anomaly_{campaign_id}_{metric.value}_zscore_{int(detected_at.timestamp() * 1000)}",
        campaign_id=campaign_id,
        campaign_name=f"Campaign {campaign_id}",
        type=AnomalyType.SPIKE if change_percent >= 0 else AnomalyType.DROP,
        severity=severity,
        metric=metric,
        current_value=current,
        previous_value=previous,
        change_percent=change_percent,
        message=f"{metric.value} moved {change_percent:.0f}%.",
        detected_at=detected_at,
        detection_method=DetectionMethod.ZSCORE,
        z_score=z_score,
        recommendations=["Review campaign settings"],
    )


@pytest.fixture
def ordinary_day() -> date:
    return ORDINARY_DAY


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at 09:00 UTC on the ordinary evaluation day."""
    return FixedClock(datetime(2025, 4, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def series_reader():
    """Factory building a SeriesKPIReader ending on the given day."""

    def factory(series: Dict[Tuple[str, str], Sequence[float]], end: date = ORDINARY_DAY) -> SeriesKPIReader:
        return SeriesKPIReader(series, end)

    return factory


@pytest.fixture
def email_port() -> RecordingEmailPort:
    return RecordingEmailPort()


@pytest.fixture
def make_anomaly():
    """Factory fixture around build_anomaly."""
    return build_anomaly


@pytest.fixture
def kpi_snapshots() -> List[KPISnapshot]:
    """
    Twenty days of steady delivery for two campaigns.

    camp-1 ends with a conversion collapse on the last day; camp-2 stays flat.
    """
    snapshots = []
    for i in range(20):
        day = ORDINARY_DAY - timedelta(days=19 - i)
        last = i == 19
        snapshots.append(
            KPISnapshot(
                campaign_id="camp-1",
                date=day,
                impressions=10000 + (i % 2) * 200,
                clicks=300 + (i % 2) * 10,
                conversions=4 if last else 30 + (i % 2) * 2,
                spend=450000.0 + (i % 2) * 10000.0,
                revenue=200000.0 if last else 1500000.0 + (i % 2) * 50000.0,
            )
        )
        snapshots.append(
            KPISnapshot(
                campaign_id="camp-2",
                date=day,
                impressions=5000,
                clicks=100,
                conversions=10,
                spend=100000.0,
                revenue=300000.0,
            )
        )
    return snapshots


@pytest.fixture
def kpi_frame(kpi_snapshots) -> pd.DataFrame:
    """The kpi_snapshots fixture as a DataFrame export with string dates."""
    rows = [s.model_dump() for s in kpi_snapshots]
    frame = pd.DataFrame(rows)
    frame["date"] = frame["date"].astype(str)
    return frame


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
