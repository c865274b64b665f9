"""
Statistics toolkit for anomaly detection.

Pure numeric helpers with deterministic degenerate-case behaviour: empty or
zero-variance inputs yield zeros, never NaN, infinity or exceptions.
"""

from __future__ import annotations

from math import floor, ceil, sqrt
from typing import List, Optional, Sequence

from adsentinel.core.config import TrendConfig, config

from .schema import Trend


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for empty input."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def std_dev(values: Sequence[float], mean_value: float) -> float:
    """
    Population standard deviation (divides by N).

    Returns 0.0 for fewer than two values.
    """
    if len(values) < 2:
        return 0.0
    variance = sum((v - mean_value) ** 2 for v in values) / len(values)
    return sqrt(variance)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Percentile with linear interpolation between ranks.

    Uses index = p / 100 * (n - 1). Input must already be sorted ascending.
    """
    if not sorted_values:
        return 0.0
    index = (p / 100.0) * (len(sorted_values) - 1)
    lower = floor(index)
    upper = ceil(index)
    if lower == upper:
        return float(sorted_values[lower])
    fraction = index - lower
    return sorted_values[lower] * (1.0 - fraction) + sorted_values[upper] * fraction


def z_score(value: float, mean_value: float, std: float) -> float:
    """Standardized distance from the mean; 0.0 when std is 0."""
    if std == 0:
        return 0.0
    return (value - mean_value) / std


def iqr_distance(value: float, q1: float, q3: float, iqr: float) -> float:
    """
    Distance outside [q1, q3] in IQR units.

    Values inside the quartile range, or any value when iqr is 0, score 0.0.
    Distances above 1.5 are conventionally outliers.
    """
    if iqr == 0:
        return 0.0
    if value < q1:
        return (q1 - value) / iqr
    if value > q3:
        return (value - q3) / iqr
    return 0.0


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """Sliding-window means; length is max(0, n - window + 1)."""
    if window <= 0 or len(values) < window:
        return []
    return [mean(values[i - window + 1 : i + 1]) for i in range(window - 1, len(values))]


def change_percent(current: float, previous: float) -> float:
    """
    Relative change in percent.

    A zero previous value yields 100.0 for a positive current value, else 0.0.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / abs(previous) * 100.0


def coefficient_of_variation(values: Sequence[float]) -> float:
    """std / |mean|; 0.0 when the mean is 0."""
    m = mean(values)
    if m == 0:
        return 0.0
    return std_dev(values, m) / abs(m)


def detect_trend(values: Sequence[float], trend_config: Optional[TrendConfig] = None) -> Trend:
    """
    Classify a chronological series.

    The series is split in halves (the middle point of an odd-length series
    belongs to neither). High dispersion is volatile regardless of direction;
    otherwise a second-half mean that moved more than growth_threshold relative
    to the first half is a directional trend.
    """
    settings = trend_config or config.trend
    if len(values) < 3:
        return Trend.STABLE

    cv = coefficient_of_variation(values)
    if cv > settings.volatility_cv_threshold:
        return Trend.VOLATILE

    half = len(values) // 2
    first_mean = mean(values[:half])
    second_mean = mean(values[-half:])
    if first_mean == 0:
        return Trend.STABLE

    growth = (second_mean - first_mean) / abs(first_mean)
    if cv > settings.low_volatility_cv:
        return Trend.STABLE
    if growth > settings.growth_threshold:
        return Trend.INCREASING
    if growth < -settings.growth_threshold:
        return Trend.DECREASING
    return Trend.STABLE
