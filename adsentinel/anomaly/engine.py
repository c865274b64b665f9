"""
Campaign anomaly detection engine.

Reads daily KPI series through the data ports, estimates baselines, runs the
detectors, applies market-calendar suppression and emits at most one Anomaly
per (campaign, metric).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

from adsentinel.core.config import DetectionConfig, TrendConfig, config
from adsentinel.core.exceptions import AnomalyDetectionError, ConfigurationError
from adsentinel.data.ports import CampaignLister, KPIReader
from adsentinel.data.schema import DateRange
from adsentinel.market.calendar import MarketCalendar, change_key_for
from adsentinel.market.events import ExpectedRange

from .baselines import BaselineCalculator
from .detectors import (
    IQRDetector,
    MovingAverageDetector,
    RateOfChangeDetector,
    Signal,
    ZScoreDetector,
)
from .messages import build_message, build_recommendations
from .schema import Anomaly, Baseline, DetectionMethod, MarketContext, MetricName, Trend
from .scoring import SeverityPolicy, anomaly_type, sort_by_severity
from .statistics import change_percent, detect_trend

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnomalyDetector:
    """
    Deterministic campaign anomaly detector.

    Notes:
    - Signal precedence: zscore, then iqr, then moving_average, then the
      day-over-day threshold. The first detector that fires wins.
    - A candidate whose change falls inside the expected range of a market
      event in effect is suppressed.
    - Insufficient data is not an error; the metric is skipped.
    """

    kpi_reader: KPIReader
    campaign_lister: Optional[CampaignLister] = None
    detection_config: Optional[DetectionConfig] = None
    trend_config: Optional[TrendConfig] = None
    severity_policy: Optional[SeverityPolicy] = None
    calculator: BaselineCalculator = field(default_factory=BaselineCalculator)
    clock: Callable[[], datetime] = _utc_now

    def __post_init__(self) -> None:
        self.detection_config = self.detection_config or config.detection
        self.trend_config = self.trend_config or config.trend
        self.severity_policy = self.severity_policy or SeverityPolicy.from_config(self.detection_config)

        settings = self.detection_config
        self._metrics = [MetricName(m) for m in settings.metrics]
        self._z_detector = ZScoreDetector(
            threshold=settings.zscore_threshold,
            min_points=settings.min_data_points_for_zscore,
            special_day_factor=settings.special_day_zscore_factor,
        )
        self._iqr_detector = IQRDetector(
            multiplier=settings.iqr_multiplier,
            min_points=settings.min_data_points,
        )
        self._ma_detector = MovingAverageDetector(
            window=settings.moving_average_window,
            deviation_threshold=settings.trend_deviation_threshold,
        )
        self._roc_detector = RateOfChangeDetector(
            spike_threshold=settings.spike_threshold,
            drop_threshold=settings.drop_threshold,
            min_points=settings.min_data_points,
        )

    def detect_anomalies(
        self,
        user_id: str,
        industry: Optional[str] = None,
        calendar: Optional[MarketCalendar] = None,
    ) -> List[Anomaly]:
        """
        Evaluate every active campaign of a user.

        Returns the union of campaign anomalies, most severe first.
        """
        if self.campaign_lister is None:
            raise ConfigurationError("AnomalyDetector.detect_anomalies requires a campaign_lister")

        anomalies: List[Anomaly] = []
        campaigns = self.campaign_lister.active_campaigns(user_id)
        logger.debug("Evaluating %d campaigns for user %s", len(campaigns), user_id)

        for campaign in campaigns:
            anomalies.extend(
                self.detect_campaign_anomalies(
                    campaign.id,
                    campaign_name=campaign.name,
                    industry=industry,
                    calendar=calendar,
                )
            )

        return sort_by_severity(anomalies)

    def detect_campaign_anomalies(
        self,
        campaign_id: str,
        campaign_name: Optional[str] = None,
        industry: Optional[str] = None,
        as_of: Optional[date] = None,
        calendar: Optional[MarketCalendar] = None,
    ) -> List[Anomaly]:
        """
        Evaluate one campaign.

        The evaluation date defaults to the date of the latest snapshot.
        """
        try:
            snapshots = self.kpi_reader.latest_two(campaign_id)
        except Exception as exc:
            raise AnomalyDetectionError(f"Failed to read KPIs for campaign {campaign_id}: {exc}") from exc
        if len(snapshots) < 2:
            logger.info("Skipping campaign %s: fewer than 2 KPI snapshots", campaign_id)
            return []

        evaluation_date = as_of or snapshots[-1].date
        name = campaign_name or campaign_id
        calendar = self._calendar_for(evaluation_date, calendar)

        anomalies: List[Anomaly] = []
        for metric in self._metrics:
            anomaly = self._detect_metric(campaign_id, name, metric, evaluation_date, industry, calendar)
            if anomaly is not None:
                anomalies.append(anomaly)

        if anomalies:
            logger.info("Detected %d anomalies for campaign %s", len(anomalies), campaign_id)
        return sort_by_severity(anomalies)

    def _calendar_for(
        self, evaluation_date: date, calendar: Optional[MarketCalendar]
    ) -> Optional[MarketCalendar]:
        if not self.detection_config.use_market_calendar:
            return None
        if calendar is not None and abs(calendar.year - evaluation_date.year) <= 1:
            return calendar
        return MarketCalendar.for_date(evaluation_date)

    def _detect_metric(
        self,
        campaign_id: str,
        campaign_name: str,
        metric: MetricName,
        evaluation_date: date,
        industry: Optional[str],
        calendar: Optional[MarketCalendar],
    ) -> Optional[Anomaly]:
        window = DateRange(
            start=evaluation_date - timedelta(days=self.detection_config.lookback_days),
            end=evaluation_date,
        )
        try:
            points = self.kpi_reader.series_for(campaign_id, metric, window)
        except Exception as exc:
            raise AnomalyDetectionError(
                f"Failed to read {metric.value} series for campaign {campaign_id}: {exc}"
            ) from exc
        if len(points) < 2:
            logger.debug("Skipping %s/%s: fewer than 2 points", campaign_id, metric.value)
            return None

        values = [p.value for p in points]
        latest, previous = values[-1], values[-2]
        baseline = self.calculator.calculate(values[:-1])
        context = self._market_context(calendar, evaluation_date, metric, industry)
        expected = context.expected_change_range if context is not None and context.is_special_day else None

        signal = self._first_signal(values, latest, previous, baseline, expected)
        if signal is None:
            return None

        change = change_percent(latest, signal.reference)
        if expected is not None and expected.contains(change):
            logger.debug(
                "Suppressed %s/%s %.1f%% change: expected during %s",
                campaign_id,
                metric.value,
                change,
                ", ".join(context.events),
            )
            return None

        trend = self._trend_for(signal, values, baseline, latest, previous)
        detected_at = self.clock()
        return Anomaly(
            id=f"anomaly_{campaign_id}_{metric.value}_{signal.method.value}_{int(detected_at.timestamp() * 1000)}",
            campaign_id=campaign_id,
            campaign_name=campaign_name,
            type=anomaly_type(metric, signal.is_spike, trend),
            severity=self.severity_policy.severity(metric, signal.is_spike, signal.magnitude),
            metric=metric,
            current_value=latest,
            previous_value=signal.reference,
            change_percent=change,
            message=build_message(metric, change, signal.method, trend),
            detected_at=detected_at,
            detection_method=signal.method,
            z_score=signal.z_score,
            iqr_distance=signal.iqr_distance,
            moving_average_deviation=signal.moving_average_deviation,
            baseline=baseline if baseline.sample_size > 0 else None,
            historical_trend=trend,
            market_context=context,
            recommendations=build_recommendations(metric, signal.is_spike, trend),
        )

    def _first_signal(
        self,
        values: List[float],
        latest: float,
        previous: float,
        baseline: Baseline,
        expected: Optional[ExpectedRange],
    ) -> Optional[Signal]:
        return (
            self._z_detector.detect(latest, baseline, special_day=expected is not None)
            or self._iqr_detector.detect(latest, baseline)
            or self._ma_detector.detect(values, expected)
            or self._roc_detector.detect(latest, previous, baseline.sample_size, expected)
        )

    def _trend_for(
        self,
        signal: Signal,
        values: List[float],
        baseline: Baseline,
        latest: float,
        previous: float,
    ) -> Optional[Trend]:
        if signal.method in (DetectionMethod.ZSCORE, DetectionMethod.IQR):
            return detect_trend([baseline.mean, previous, latest], self.trend_config)
        if signal.method == DetectionMethod.MOVING_AVERAGE:
            return detect_trend(values[-self.detection_config.moving_average_window :], self.trend_config)
        return None

    def _market_context(
        self,
        calendar: Optional[MarketCalendar],
        evaluation_date: date,
        metric: MetricName,
        industry: Optional[str],
    ) -> Optional[MarketContext]:
        if calendar is None:
            return None
        info = calendar.get_date_event_info(evaluation_date, industry)
        return MarketContext(
            is_special_day=info.is_special_day,
            events=info.event_names,
            expected_change_range=(
                info.combined_expected_change.for_key(change_key_for(metric.value))
                if info.is_special_day
                else None
            ),
        )
