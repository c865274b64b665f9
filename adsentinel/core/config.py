"""
Application configuration for the campaign anomaly sentinel.

Provides environment-aware settings with conservative defaults. All detection,
root-cause and alerting thresholds are configurable to avoid hard-coded
"magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrendConfig(BaseModel):
	"""
	Thresholds for trend classification.

	Notes:
	- growth_threshold: relative change between first-half and second-half means
	  required to call a series increasing or decreasing (0.15 = 15%).
	- volatility_cv_threshold: coefficient of variation above which a series is
	  volatile regardless of direction.
	- low_volatility_cv: maximum coefficient of variation for a directional trend.
	"""

	growth_threshold: float = Field(0.15, gt=0.0)
	volatility_cv_threshold: float = Field(0.5, gt=0.0)
	low_volatility_cv: float = Field(0.3, gt=0.0)


class DetectionConfig(BaseModel):
	"""
	Anomaly detection configuration.

	Rationale:
	- Z-score and IQR thresholds follow common outlier conventions.
	- Percentage thresholds are the day-over-day fallback for sparse history.
	- Special days widen thresholds so seasonal swings are not flagged.
	"""

	zscore_threshold: float = Field(2.5, gt=0.0, description="|z| above which a value is anomalous")
	iqr_multiplier: float = Field(1.5, gt=0.0, description="IQR distance above which a value is an outlier")
	moving_average_window: int = Field(7, ge=2)
	trend_deviation_threshold: float = Field(
		30.0, gt=0.0, description="Percent deviation from the moving average"
	)
	spike_threshold: float = Field(50.0, gt=0.0, description="Day-over-day spike threshold (%)")
	drop_threshold: float = Field(-30.0, lt=0.0, description="Day-over-day drop threshold (%)")
	min_data_points: int = Field(7, ge=2, description="History required for IQR / baseline path")
	min_data_points_for_zscore: int = Field(14, ge=2)
	lookback_days: int = Field(30, ge=2)
	special_day_zscore_factor: float = Field(1.2, ge=1.0)
	severity_escalation_magnitude: float = Field(4.0, gt=0.0)
	use_market_calendar: bool = True
	metrics: List[str] = Field(
		default_factory=lambda: ["spend", "ctr", "cpa", "roas", "conversions", "cpc"]
	)


class RootCauseConfig(BaseModel):
	"""
	Root-cause analysis configuration.

	Notes:
	- probability_cap keeps the analyzer from ever claiming certainty.
	- recent_change_lookback_days: changes older than this are ignored entirely.
	"""

	probability_cap: float = Field(0.95, gt=0.0, le=0.95)
	min_probability: float = Field(0.1, ge=0.0, le=1.0)
	recent_change_lookback_days: int = Field(3, ge=0)
	max_top_causes: int = Field(3, ge=1)
	max_next_steps: int = Field(5, ge=1)
	technical_issue_boost: float = Field(1.3, ge=1.0)
	competitor_activity_boost: float = Field(1.2, ge=1.0)
	recent_change_boost: float = Field(1.15, ge=1.0)
	market_cause_probability: float = Field(0.8, ge=0.0, le=1.0)
	recent_change_probability: float = Field(0.75, ge=0.0, le=1.0)


class AlertConfig(BaseModel):
	"""
	Alert dispatch configuration.

	Notes:
	- minimum_severity: "critical" (critical only), "warning" (warning and
	  critical) or "info" (everything).
	- deduplication_window_hours also bounds how long alert records are kept.
	- send_timeout_seconds bounds a single email send; a timeout is reported,
	  not retried.
	"""

	minimum_severity: Literal["critical", "warning", "info"] = "warning"
	max_alerts_per_campaign_per_day: int = Field(5, ge=1)
	deduplication_window_hours: int = Field(24, ge=1)
	enable_email_alerts: bool = True
	send_timeout_seconds: float = Field(10.0, gt=0.0)
	brand_name: str = "AdSentinel"
	dashboard_url: str = "http://localhost:3000"


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested sections can be overridden with a double underscore, e.g.
	ADSENTINEL_ALERTS__MINIMUM_SEVERITY=critical.
	"""

	model_config = SettingsConfigDict(
		env_prefix="ADSENTINEL_",
		env_nested_delimiter="__",
		env_file=".env",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	trend: TrendConfig = TrendConfig()
	detection: DetectionConfig = DetectionConfig()
	rootcause: RootCauseConfig = RootCauseConfig()
	alerts: AlertConfig = AlertConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
