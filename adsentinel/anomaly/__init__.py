"""
Anomaly module: statistical anomaly detection for campaign KPIs.

Implements deterministic baselines, detectors, severity policy and the
campaign anomaly detector.
"""

from .baselines import BaselineCalculator, calculate_baseline
from .detectors import IQRDetector, MovingAverageDetector, RateOfChangeDetector, Signal, ZScoreDetector
from .engine import AnomalyDetector
from .schema import (
	Anomaly,
	AnomalySeverity,
	AnomalyType,
	Baseline,
	DetectionMethod,
	MarketContext,
	MetricName,
	Trend,
	severity_rank,
)
from .scoring import SeverityPolicy, anomaly_type, is_adverse, sort_by_severity

__all__ = [
	"AnomalyDetector",
	"Anomaly",
	"AnomalySeverity",
	"AnomalyType",
	"Baseline",
	"DetectionMethod",
	"MarketContext",
	"MetricName",
	"Trend",
	"severity_rank",
	"BaselineCalculator",
	"calculate_baseline",
	"Signal",
	"ZScoreDetector",
	"IQRDetector",
	"MovingAverageDetector",
	"RateOfChangeDetector",
	"SeverityPolicy",
	"anomaly_type",
	"is_adverse",
	"sort_by_severity",
]
