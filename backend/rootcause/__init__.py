"""
Root-cause analysis for campaign anomalies.

Takes a single Anomaly (plus optional AnalysisContext) and produces a bounded,
ranked RootCauseAnalysis with urgency and next steps.
"""

from .analyzer import RootCauseAnalyzer
from .rules import CAUSE_RULES, CauseRule, Direction
from .schema import (
    ActionPriority,
    AnalysisContext,
    CampaignChange,
    CauseCategory,
    ChangeType,
    Confidence,
    PossibleCause,
    RootCauseAction,
    RootCauseAnalysis,
    Timeframe,
    UrgencyLevel,
)

__all__ = [
    "RootCauseAnalyzer",
    "CAUSE_RULES",
    "CauseRule",
    "Direction",
    "ActionPriority",
    "AnalysisContext",
    "CampaignChange",
    "CauseCategory",
    "ChangeType",
    "Confidence",
    "PossibleCause",
    "RootCauseAction",
    "RootCauseAnalysis",
    "Timeframe",
    "UrgencyLevel",
]
