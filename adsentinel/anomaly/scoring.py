"""
Severity policy for campaign anomalies.

Maps (metric, direction) to a base severity and escalates by signal magnitude.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from adsentinel.core.config import DetectionConfig, config

from .schema import Anomaly, AnomalySeverity, AnomalyType, MetricName, Trend, severity_rank

# Increases are adverse
COST_METRICS: FrozenSet[MetricName] = frozenset({MetricName.SPEND, MetricName.CPC, MetricName.CPA})

# Decreases are adverse; increases are good news
VALUE_METRICS: FrozenSet[MetricName] = frozenset(
    {
        MetricName.IMPRESSIONS,
        MetricName.CLICKS,
        MetricName.CONVERSIONS,
        MetricName.CTR,
        MetricName.CVR,
        MetricName.ROAS,
    }
)

# metric -> (spike severity, drop severity)
DEFAULT_SEVERITY_TABLE: Dict[MetricName, Tuple[AnomalySeverity, AnomalySeverity]] = {
    MetricName.SPEND: (AnomalySeverity.WARNING, AnomalySeverity.INFO),
    MetricName.IMPRESSIONS: (AnomalySeverity.INFO, AnomalySeverity.WARNING),
    MetricName.CLICKS: (AnomalySeverity.INFO, AnomalySeverity.WARNING),
    MetricName.CONVERSIONS: (AnomalySeverity.INFO, AnomalySeverity.CRITICAL),
    MetricName.CTR: (AnomalySeverity.INFO, AnomalySeverity.WARNING),
    MetricName.CPA: (AnomalySeverity.CRITICAL, AnomalySeverity.INFO),
    MetricName.ROAS: (AnomalySeverity.INFO, AnomalySeverity.CRITICAL),
    MetricName.CPC: (AnomalySeverity.WARNING, AnomalySeverity.INFO),
    MetricName.CVR: (AnomalySeverity.INFO, AnomalySeverity.WARNING),
}

_ESCALATION = {
    AnomalySeverity.INFO: AnomalySeverity.WARNING,
    AnomalySeverity.WARNING: AnomalySeverity.CRITICAL,
    AnomalySeverity.CRITICAL: AnomalySeverity.CRITICAL,
}


def is_adverse(metric: MetricName, is_spike: bool) -> bool:
    """True if the movement hurts the campaign."""
    if MetricName(metric) in COST_METRICS:
        return is_spike
    return not is_spike


@dataclass
class SeverityPolicy:
    """
    Severity table plus magnitude escalation.

    Notes:
    - A magnitude above escalation_magnitude raises the base severity by one
      tier (info -> warning -> critical).
    - Increases on value metrics are positive news and never escalate.
    """

    escalation_magnitude: float = 4.0
    table: Dict[MetricName, Tuple[AnomalySeverity, AnomalySeverity]] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_TABLE)
    )

    @classmethod
    def from_config(cls, detection: Optional[DetectionConfig] = None) -> "SeverityPolicy":
        detection = detection or config.detection
        return cls(escalation_magnitude=detection.severity_escalation_magnitude)

    def base_severity(self, metric: MetricName, is_spike: bool) -> AnomalySeverity:
        spike, drop = self.table[MetricName(metric)]
        return spike if is_spike else drop

    def severity(self, metric: MetricName, is_spike: bool, magnitude: float) -> AnomalySeverity:
        base = self.base_severity(metric, is_spike)
        if MetricName(metric) in VALUE_METRICS and not is_adverse(metric, is_spike):
            return base
        if magnitude > self.escalation_magnitude:
            return _ESCALATION[base]
        return base


def anomaly_type(metric: MetricName, is_spike: bool, trend: Optional[Trend] = None) -> AnomalyType:
    """
    Classify an anomaly.

    Spend increases are budget anomalies; a move against the recent trend is a
    trend change; everything else is a plain spike or drop.
    """
    if MetricName(metric) == MetricName.SPEND and is_spike:
        return AnomalyType.BUDGET_ANOMALY
    if (trend == Trend.INCREASING and not is_spike) or (trend == Trend.DECREASING and is_spike):
        return AnomalyType.TREND_CHANGE
    return AnomalyType.SPIKE if is_spike else AnomalyType.DROP


def sort_by_severity(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """Most urgent first; order within a severity tier is preserved."""
    return sorted(anomalies, key=lambda a: severity_rank(a.severity))
