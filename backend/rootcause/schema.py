"""
Schema for root-cause analysis.

Analyses are explanations, not verdicts: probabilities are capped below 1.0
and every cause carries the evidence to verify and the actions to take.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from adsentinel.anomaly.schema import MetricName, Trend


class CauseCategory(str, Enum):
    EXTERNAL = "external"
    INTERNAL = "internal"
    TECHNICAL = "technical"
    MARKET = "market"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    WITHIN_DAY = "within_day"
    WITHIN_WEEK = "within_week"


class UrgencyLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ChangeType(str, Enum):
    BUDGET = "budget"
    TARGETING = "targeting"
    CREATIVE = "creative"
    BID = "bid"
    SCHEDULE = "schedule"


CONFIDENCE_ORDER = {Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}

PRIORITY_ORDER = {
    ActionPriority.LOW: 1,
    ActionPriority.MEDIUM: 2,
    ActionPriority.HIGH: 3,
    ActionPriority.CRITICAL: 4,
}


class RootCauseAction(BaseModel):
    """
    Recommended remediation step.

    Fields:
    - id: unique within an analysis (<cause id>_action_<n>)
    - priority: how urgently the step should be taken
    - action / description: short title and instruction
    - estimated_impact: expected outcome, free text
    - timeframe: when the step should be taken
    """

    model_config = ConfigDict(frozen=True)

    id: str
    priority: ActionPriority
    action: str
    description: str
    estimated_impact: str = ""
    timeframe: Timeframe


class PossibleCause(BaseModel):
    """A candidate explanation for an anomaly."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: CauseCategory
    name: str
    description: str
    probability: float = Field(ge=0.0, le=0.95)
    confidence: Confidence
    evidence: List[str] = Field(default_factory=list)
    actions: List[RootCauseAction] = Field(default_factory=list)

    @property
    def max_action_priority(self) -> int:
        return max((PRIORITY_ORDER[a.priority] for a in self.actions), default=0)


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CampaignChange(BaseModel):
    """A change made to the campaign by its owner."""

    type: ChangeType
    changed_at: datetime
    description: str

    @field_validator("changed_at")
    @classmethod
    def _make_aware(cls, value: datetime) -> datetime:
        return _assume_utc(value)


class AnalysisContext(BaseModel):
    """
    Optional context supplied by the caller.

    Fields:
    - current_date: analysis reference time (market calendar, change lookback)
    - industry: industry key for market event weighting
    - historical_pattern: trend of the metric, if known
    - recent_changes: owner changes; only those within the lookback count
    - competitor_activity: competitor activity was observed
    - technical_issues: technical problems are known

    Naive datetimes (current_date, changed_at) are taken as UTC.
    """

    current_date: datetime
    industry: Optional[str] = None
    historical_pattern: Optional[Trend] = None
    recent_changes: List[CampaignChange] = Field(default_factory=list)
    competitor_activity: bool = False
    technical_issues: bool = False

    @field_validator("current_date")
    @classmethod
    def _make_aware(cls, value: datetime) -> datetime:
        return _assume_utc(value)


class RootCauseAnalysis(BaseModel):
    """Ranked explanation for one anomaly."""

    anomaly_id: str
    metric: MetricName
    analyzed_at: datetime
    top_causes: List[PossibleCause] = Field(default_factory=list)
    all_causes: List[PossibleCause] = Field(default_factory=list)
    urgency_level: UrgencyLevel
    summary: str
    next_steps: List[str] = Field(default_factory=list)
