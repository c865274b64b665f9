"""
Unit tests for the campaign anomaly detection engine.
"""

from datetime import date

import pytest

from adsentinel.anomaly.engine import AnomalyDetector
from adsentinel.anomaly.schema import (
    AnomalySeverity,
    AnomalyType,
    DetectionMethod,
    MetricName,
    Trend,
)
from adsentinel.core.config import DetectionConfig, TrendConfig
from adsentinel.core.exceptions import AnomalyDetectionError, ConfigurationError
from adsentinel.data.readers import InMemoryCampaignLister
from adsentinel.data.schema import CampaignSummary

CHRISTMAS_SEASON_DAY = date(2025, 12, 20)


def _alternating(center: float, spread: float, length: int):
    return [center - spread if i % 2 == 0 else center + spread for i in range(length)]


def _detector(reader, clock, lister=None, **overrides) -> AnomalyDetector:
    return AnomalyDetector(
        kpi_reader=reader,
        campaign_lister=lister,
        detection_config=DetectionConfig(**overrides),
        trend_config=TrendConfig(),
        clock=clock,
    )


def test_cpa_spike_is_critical(series_reader, clock):
    reader = series_reader({("camp-1", "cpa"): _alternating(15000.0, 500.0, 20) + [25000.0]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1", "Spring Sale")

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.metric == MetricName.CPA
    assert anomaly.detection_method == DetectionMethod.ZSCORE
    assert anomaly.severity == AnomalySeverity.CRITICAL
    assert anomaly.type == AnomalyType.SPIKE
    assert anomaly.z_score == pytest.approx(20.0)
    assert anomaly.previous_value == 15000.0
    assert anomaly.change_percent == pytest.approx(66.67, abs=0.01)
    assert anomaly.message == "CPA rose 67%. Review campaign efficiency."
    assert anomaly.campaign_name == "Spring Sale"
    assert anomaly.baseline.sample_size == 20
    assert anomaly.historical_trend == Trend.INCREASING
    assert anomaly.recommendations[0] == "Review target audience segmentation"


def test_change_is_measured_against_baseline_after_outlier_day(series_reader, clock):
    # Yesterday's 40000 was itself an outlier; today's 30000 is lower than
    # yesterday but still far above the baseline.
    history = [14900.0, 15100.0] * 14 + [40000.0]
    reader = series_reader({("camp-1", "cpa"): history + [30000.0]})
    anomaly = _detector(reader, clock).detect_campaign_anomalies("camp-1")[0]

    assert anomaly.detection_method == DetectionMethod.ZSCORE
    assert anomaly.type == AnomalyType.SPIKE
    assert anomaly.severity == AnomalySeverity.CRITICAL
    assert anomaly.previous_value == pytest.approx(460000.0 / 29)
    assert anomaly.change_percent == pytest.approx(89.13, abs=0.01)
    assert anomaly.message == "CPA rose 89%. Review campaign efficiency."


def test_change_sign_matches_direction_on_every_path(series_reader, clock):
    series = {
        ("camp-1", "cpa"): [14900.0, 15100.0] * 14 + [40000.0, 30000.0],
        ("camp-1", "ctr"): [2.0, 2.2] * 5 + [3.0, 1.0],
        ("camp-1", "roas"): [3.0] * 7 + [1.0],
        ("camp-1", "spend"): [100.0, 300.0, 170.0],
    }
    anomalies = _detector(series_reader(series), clock).detect_campaign_anomalies("camp-1")

    by_metric = {a.metric: a for a in anomalies}
    assert {m: a.detection_method for m, a in by_metric.items()} == {
        MetricName.CPA: DetectionMethod.ZSCORE,
        MetricName.CTR: DetectionMethod.IQR,
        MetricName.ROAS: DetectionMethod.MOVING_AVERAGE,
        MetricName.SPEND: DetectionMethod.THRESHOLD,
    }
    assert by_metric[MetricName.CPA].type == AnomalyType.SPIKE
    for metric in (MetricName.CTR, MetricName.ROAS, MetricName.SPEND):
        assert by_metric[metric].type == AnomalyType.DROP
        assert by_metric[metric].change_percent < 0
        assert " fell " in by_metric[metric].message
    assert by_metric[MetricName.CPA].change_percent > 0
    assert by_metric[MetricName.CTR].previous_value == pytest.approx(2.2)
    assert by_metric[MetricName.SPEND].previous_value == 300.0


def test_cpa_within_normal_noise_is_ignored(series_reader, clock):
    reader = series_reader({("camp-1", "cpa"): _alternating(15000.0, 500.0, 20) + [15600.0]})
    assert _detector(reader, clock).detect_campaign_anomalies("camp-1") == []


def test_roas_halving_is_critical_drop(series_reader, clock):
    history = [2.9, 3.1] * 9 + [3.0]
    reader = series_reader({("camp-1", "roas"): history + [1.5]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.severity == AnomalySeverity.CRITICAL
    assert anomaly.type == AnomalyType.DROP
    assert anomaly.change_percent == pytest.approx(-50.0)
    assert anomaly.historical_trend == Trend.DECREASING


def test_roas_jump_stays_informational(series_reader, clock):
    history = [2.9, 3.1] * 9 + [3.0]
    reader = series_reader({("camp-1", "roas"): history + [4.8]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    assert anomalies[0].severity == AnomalySeverity.INFO
    assert anomalies[0].type == AnomalyType.SPIKE
    assert anomalies[0].change_percent == pytest.approx(60.0)


def test_iqr_used_when_history_too_short_for_zscore(series_reader, clock):
    reader = series_reader({("camp-1", "ctr"): [2.0, 2.2] * 5 + [1.0]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.detection_method == DetectionMethod.IQR
    assert anomaly.iqr_distance == pytest.approx(5.0)
    assert anomaly.z_score is None
    # CTR drop is a warning, escalated by the large distance
    assert anomaly.severity == AnomalySeverity.CRITICAL


def test_moving_average_catches_flat_history_break(series_reader, clock):
    reader = series_reader({("camp-1", "ctr"): [2.0] * 7 + [4.0]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.detection_method == DetectionMethod.MOVING_AVERAGE
    assert anomaly.moving_average_deviation == pytest.approx(75.0)
    assert anomaly.severity == AnomalySeverity.INFO
    assert anomaly.message.endswith("Deviates from the recent moving average.")


def test_sparse_history_uses_day_over_day_threshold(series_reader, clock):
    reader = series_reader({("camp-1", "spend"): [100.0, 100.0, 170.0]})
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.detection_method == DetectionMethod.THRESHOLD
    assert anomaly.type == AnomalyType.BUDGET_ANOMALY
    assert anomaly.historical_trend is None
    assert anomaly.baseline.sample_size == 2


def test_small_day_over_day_change_is_ignored(series_reader, clock):
    reader = series_reader({("camp-1", "spend"): [100.0, 100.0, 120.0]})
    assert _detector(reader, clock).detect_campaign_anomalies("camp-1") == []


def test_insufficient_data_is_skipped(series_reader, clock):
    reader = series_reader({("camp-1", "cpa"): [15000.0]})
    detector = _detector(reader, clock)

    assert detector.detect_campaign_anomalies("camp-1") == []
    assert detector.detect_campaign_anomalies("unknown-campaign") == []


def test_christmas_season_spend_surge_is_suppressed(series_reader, clock):
    series = {("camp-1", "spend"): _alternating(100.0, 5.0, 20) + [170.0]}

    seasonal = series_reader(series, end=CHRISTMAS_SEASON_DAY)
    assert _detector(seasonal, clock).detect_campaign_anomalies("camp-1") == []

    ordinary = series_reader(series)
    anomalies = _detector(ordinary, clock).detect_campaign_anomalies("camp-1")
    assert [a.metric for a in anomalies] == [MetricName.SPEND]


def test_special_day_change_outside_range_keeps_context(series_reader, clock):
    reader = series_reader(
        {("camp-1", "spend"): _alternating(100.0, 5.0, 20) + [250.0]},
        end=CHRISTMAS_SEASON_DAY,
    )
    anomalies = _detector(reader, clock).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    context = anomalies[0].market_context
    assert context.is_special_day
    assert "Christmas" in context.events
    assert context.expected_change_range.min == 20
    assert context.expected_change_range.max == 100
    assert not context.expected_change_range.contains(anomalies[0].change_percent)


def test_market_calendar_can_be_disabled(series_reader, clock):
    reader = series_reader(
        {("camp-1", "spend"): _alternating(100.0, 5.0, 20) + [170.0]},
        end=CHRISTMAS_SEASON_DAY,
    )
    anomalies = _detector(reader, clock, use_market_calendar=False).detect_campaign_anomalies("camp-1")

    assert len(anomalies) == 1
    assert anomalies[0].market_context is None


def test_anomaly_id_format(series_reader, clock):
    reader = series_reader({("camp-1", "cpa"): _alternating(15000.0, 500.0, 20) + [25000.0]})
    anomaly = _detector(reader, clock).detect_campaign_anomalies("camp-1")[0]

    expected_ms = int(clock().timestamp() * 1000)
    assert anomaly.id == f"anomaly_camp-1_cpa_zscore_{expected_ms}"
    assert anomaly.detected_at == clock()


def test_detect_anomalies_across_campaigns_sorted(series_reader, clock):
    reader = series_reader(
        {
            ("camp-1", "roas"): [2.9, 3.1] * 9 + [3.0, 4.8],
            ("camp-2", "cpa"): _alternating(15000.0, 500.0, 20) + [25000.0],
        }
    )
    lister = InMemoryCampaignLister(
        {"user-1": [CampaignSummary(id="camp-1", name="One"), CampaignSummary(id="camp-2", name="Two")]}
    )
    anomalies = _detector(reader, clock, lister=lister).detect_anomalies("user-1")

    assert [a.campaign_id for a in anomalies] == ["camp-2", "camp-1"]
    assert [a.severity for a in anomalies] == [AnomalySeverity.CRITICAL, AnomalySeverity.INFO]


def test_detect_anomalies_requires_lister(series_reader, clock):
    with pytest.raises(ConfigurationError):
        _detector(series_reader({}), clock).detect_anomalies("user-1")


def test_reader_failures_are_wrapped(clock):
    class BrokenReader:
        def latest_two(self, campaign_id):
            raise IOError("database unavailable")

        def series_for(self, campaign_id, metric, date_range):
            return []

    detector = _detector(BrokenReader(), clock)
    with pytest.raises(AnomalyDetectionError, match="database unavailable"):
        detector.detect_campaign_anomalies("camp-1")
