"""
Detectors for statistical deviations.

Implements explainable methods:
- Z-score detection against a historical baseline
- IQR (interquartile range) outlier distance
- Moving-average (trend) deviation
- Day-over-day rate of change (fallback for sparse history)

Each detector returns a Signal when it fires and None otherwise. Detectors are
stateless; the engine decides which signal wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from adsentinel.market.events import ExpectedRange

from .schema import Baseline, DetectionMethod
from .statistics import change_percent, iqr_distance, moving_average, z_score


@dataclass(frozen=True)
class Signal:
    """
    A fired detector.

    magnitude is the value fed into severity escalation: |z|, the IQR
    distance, or a percentage deviation divided by 10. reference is the value
    the observation was compared against (baseline mean, baseline median,
    moving average or the previous day); is_spike is always observed > reference.
    """

    method: DetectionMethod
    is_spike: bool
    magnitude: float
    reference: float
    z_score: Optional[float] = None
    iqr_distance: Optional[float] = None
    moving_average_deviation: Optional[float] = None


@dataclass
class ZScoreDetector:
    """
    Z-score detector.

    Requires min_points of history and a non-zero standard deviation. On
    special market days the threshold is multiplied by special_day_factor.
    """

    threshold: float
    min_points: int
    special_day_factor: float = 1.0

    def detect(self, observed: float, baseline: Baseline, special_day: bool = False) -> Optional[Signal]:
        if baseline.sample_size < self.min_points or baseline.std_dev <= 0:
            return None

        z = z_score(observed, baseline.mean, baseline.std_dev)
        threshold = self.threshold * self.special_day_factor if special_day else self.threshold
        if abs(z) <= threshold:
            return None
        return Signal(
            method=DetectionMethod.ZSCORE,
            is_spike=z > 0,
            magnitude=abs(z),
            reference=baseline.mean,
            z_score=z,
        )


@dataclass
class IQRDetector:
    """
    IQR outlier detector.

    Fires when the value lies more than `multiplier` IQRs outside [q1, q3].
    """

    multiplier: float
    min_points: int

    def detect(self, observed: float, baseline: Baseline) -> Optional[Signal]:
        if baseline.sample_size < self.min_points or baseline.iqr <= 0:
            return None

        distance = iqr_distance(observed, baseline.q1, baseline.q3, baseline.iqr)
        if distance <= self.multiplier:
            return None
        return Signal(
            method=DetectionMethod.IQR,
            is_spike=observed > baseline.q3,
            magnitude=distance,
            reference=baseline.median,
            iqr_distance=distance,
        )


@dataclass
class MovingAverageDetector:
    """
    Trend deviation detector.

    Compares the latest value with the latest moving average (which includes
    it). On special days the threshold grows by half the largest expected
    change magnitude.
    """

    window: int
    deviation_threshold: float

    def adjusted_threshold(self, expected: Optional[ExpectedRange]) -> float:
        if expected is None:
            return self.deviation_threshold
        return self.deviation_threshold + max(abs(expected.min), abs(expected.max)) * 0.5

    def detect(self, values: Sequence[float], expected: Optional[ExpectedRange] = None) -> Optional[Signal]:
        averages = moving_average(values, self.window)
        if not averages:
            return None

        latest_ma = averages[-1]
        if latest_ma == 0:
            return None

        deviation = (values[-1] - latest_ma) / latest_ma * 100.0
        if abs(deviation) <= self.adjusted_threshold(expected):
            return None
        return Signal(
            method=DetectionMethod.MOVING_AVERAGE,
            is_spike=deviation > 0,
            magnitude=abs(deviation) / 10.0,
            reference=latest_ma,
            moving_average_deviation=deviation,
        )


@dataclass
class RateOfChangeDetector:
    """
    Day-over-day percentage change detector.

    Only used while history is too short for the baseline path
    (sample_size < min_points) and the previous value is positive. On special
    days the spike threshold grows by half the expected max and the drop
    threshold by half the expected min.
    """

    spike_threshold: float
    drop_threshold: float
    min_points: int

    def adjusted_thresholds(self, expected: Optional[ExpectedRange]) -> Tuple[float, float]:
        if expected is None:
            return self.spike_threshold, self.drop_threshold
        return (
            self.spike_threshold + expected.max * 0.5,
            self.drop_threshold + expected.min * 0.5,
        )

    def detect(
        self,
        observed: float,
        previous: float,
        sample_size: int,
        expected: Optional[ExpectedRange] = None,
    ) -> Optional[Signal]:
        if sample_size >= self.min_points or previous <= 0:
            return None

        change = change_percent(observed, previous)
        spike, drop = self.adjusted_thresholds(expected)
        if drop < change < spike:
            return None
        return Signal(
            method=DetectionMethod.THRESHOLD,
            is_spike=change > 0,
            magnitude=abs(change) / 10.0,
            reference=previous,
        )
