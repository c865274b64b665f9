"""
Schema definitions for campaign anomaly detection.

All anomaly outputs are deterministic and explainable. Each anomaly references
its observed value, the previous value, the detection method that fired and,
where available, the baseline statistics it was compared against.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from adsentinel.data.schema import MetricName
from adsentinel.market.events import ExpectedRange


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies, most urgent first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AnomalyType(str, Enum):
    """Kinds of deviation an anomaly can describe."""

    SPIKE = "spike"
    DROP = "drop"
    TREND_CHANGE = "trend_change"
    BUDGET_ANOMALY = "budget_anomaly"


class DetectionMethod(str, Enum):
    """Signal that produced the anomaly."""

    ZSCORE = "zscore"
    IQR = "iqr"
    MOVING_AVERAGE = "moving_average"
    THRESHOLD = "threshold"


class Trend(str, Enum):
    """Direction classification of a value series."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


SEVERITY_ORDER = {
    AnomalySeverity.CRITICAL: 0,
    AnomalySeverity.WARNING: 1,
    AnomalySeverity.INFO: 2,
}


def severity_rank(severity: AnomalySeverity) -> int:
    """Return the sort rank of a severity (0 = most urgent)."""
    return SEVERITY_ORDER[AnomalySeverity(severity)]


class Baseline(BaseModel):
    """
    Baseline statistics over a historical window.

    Fields:
    - mean / std_dev: central tendency and population standard deviation
    - median, q1, q3, percentile95: linear-interpolated percentiles
    - iqr: q3 - q1
    - min / max: observed range
    - sample_size: number of points used (0 means every field is 0)
    """

    model_config = ConfigDict(frozen=True)

    mean: float = 0.0
    std_dev: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    q1: float = 0.0
    q3: float = 0.0
    iqr: float = 0.0
    percentile95: float = 0.0
    sample_size: int = Field(0, ge=0)


class MarketContext(BaseModel):
    """
    Calendar context attached to an anomaly.

    Fields:
    - is_special_day: True if any market event is in effect
    - events: names of the events in effect
    - expected_change_range: expected change for the anomaly's metric

    Anomalies whose change falls inside expected_change_range are suppressed,
    so an attached range always means the change fell outside it.
    """

    model_config = ConfigDict(frozen=True)

    is_special_day: bool = False
    events: List[str] = Field(default_factory=list)
    expected_change_range: Optional[ExpectedRange] = None


class Anomaly(BaseModel):
    """
    A single campaign KPI anomaly.

    Created by the detector and never mutated afterwards; consumed by the
    root-cause analyzer and the alert dispatcher.

    previous_value is the value the detector compared against: the baseline
    mean (zscore), the baseline median (iqr), the moving average
    (moving_average) or the previous day (threshold). change_percent is
    measured against it, so its sign always matches the anomaly direction.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str
    campaign_name: str
    type: AnomalyType
    severity: AnomalySeverity
    metric: MetricName
    current_value: float
    previous_value: float
    change_percent: float
    message: str
    detected_at: datetime
    detection_method: DetectionMethod
    z_score: Optional[float] = None
    iqr_distance: Optional[float] = None
    moving_average_deviation: Optional[float] = None
    baseline: Optional[Baseline] = None
    historical_trend: Optional[Trend] = None
    market_context: Optional[MarketContext] = None
    recommendations: List[str] = Field(default_factory=list)

    @property
    def is_increase(self) -> bool:
        return self.change_percent >= 0
