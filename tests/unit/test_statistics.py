"""
Unit tests for the statistics toolkit.
"""

from math import isclose

from adsentinel.anomaly.schema import Trend
from adsentinel.anomaly.statistics import (
    change_percent,
    coefficient_of_variation,
    detect_trend,
    iqr_distance,
    mean,
    moving_average,
    percentile,
    std_dev,
    z_score,
)
from adsentinel.core.config import TrendConfig


def test_z_score_basic():
    assert z_score(120.0, 100.0, 10.0) == 2.0
    assert z_score(80.0, 100.0, 10.0) == -2.0


def test_z_score_zero_std_is_zero():
    assert z_score(500.0, 100.0, 0.0) == 0.0


def test_empty_inputs_yield_zero():
    assert mean([]) == 0.0
    assert std_dev([], 0.0) == 0.0
    assert percentile([], 50) == 0.0
    assert coefficient_of_variation([]) == 0.0


def test_std_dev_is_population():
    values = [2, 4, 4, 4, 5, 5, 7, 9]
    assert std_dev(values, mean(values)) == 2.0
    assert std_dev([5.0], 5.0) == 0.0


def test_percentile_interpolates():
    values = [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
    assert percentile(values, 50) == 55.0
    assert isclose(percentile(values, 25), 32.5)
    assert percentile(values, 0) == 10
    assert percentile(values, 100) == 100


def test_iqr_distance():
    assert iqr_distance(15.0, 10.0, 20.0, 10.0) == 0.0
    assert iqr_distance(40.0, 10.0, 20.0, 10.0) == 2.0
    assert iqr_distance(5.0, 10.0, 20.0, 10.0) == 0.5
    assert iqr_distance(1000.0, 10.0, 10.0, 0.0) == 0.0


def test_moving_average_windows():
    assert moving_average([1, 2, 3, 4], 2) == [1.5, 2.5, 3.5]
    assert moving_average([1, 2], 3) == []
    assert moving_average([1, 2, 3], 0) == []


def test_change_percent():
    assert change_percent(150.0, 100.0) == 50.0
    assert change_percent(50.0, 100.0) == -50.0
    assert change_percent(5.0, 0.0) == 100.0
    assert change_percent(0.0, 0.0) == 0.0
    # Relative to the magnitude of a negative base
    assert change_percent(50.0, -100.0) == 150.0


def test_coefficient_of_variation_zero_mean():
    assert coefficient_of_variation([-1.0, 1.0]) == 0.0


def test_detect_trend_directions():
    settings = TrendConfig()
    assert detect_trend([10, 11, 12, 13, 14, 15], settings) == Trend.INCREASING
    assert detect_trend([15, 14, 13, 12, 11, 10], settings) == Trend.DECREASING
    assert detect_trend([100, 100, 100], settings) == Trend.STABLE


def test_detect_trend_short_series_is_stable():
    assert detect_trend([1.0, 50.0], TrendConfig()) == Trend.STABLE


def test_detect_trend_volatile_wins_over_direction():
    assert detect_trend([1, 10, 1, 10], TrendConfig()) == Trend.VOLATILE


def test_detect_trend_moderate_dispersion_is_stable():
    # cv is about 0.4: not volatile, but too noisy to call a direction
    assert detect_trend([6, 8, 10, 16, 18, 20], TrendConfig()) == Trend.STABLE


def test_detect_trend_zero_first_half_is_stable():
    assert detect_trend([0, 0, 0, 0, 0, 0], TrendConfig()) == Trend.STABLE


def test_percentile_median_odd_and_even():
    assert percentile([1, 3, 7], 50) == 3
    assert percentile([1, 3, 7, 9], 50) == 5.0
    assert percentile([42.0], 50) == 42.0


def test_singleton_inputs():
    assert std_dev([7.0], 7.0) == 0.0
    assert z_score(7.0, 7.0, 0.0) == 0.0


def test_iqr_distance_grows_with_distance():
    distances = [iqr_distance(v, 10.0, 20.0, 10.0) for v in (21.0, 25.0, 40.0, 100.0)]
    assert all(d > 0 for d in distances)
    assert distances == sorted(distances)
    assert len(set(distances)) == len(distances)


def test_moving_average_length():
    values = list(range(10))
    for window in range(1, 13):
        assert len(moving_average(values, window)) == max(0, len(values) - window + 1)
