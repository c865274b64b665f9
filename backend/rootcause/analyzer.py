"""
Root-cause analyzer.

Explains one anomaly by matching the rule table, scaling each rule's base
probability by severity, change magnitude and context, and adding causes
derived from the market calendar and recent campaign changes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from adsentinel.anomaly.messages import metric_label
from adsentinel.anomaly.schema import Anomaly, AnomalySeverity, MetricName
from adsentinel.core.config import RootCauseConfig, config
from adsentinel.market.calendar import MarketCalendar, change_key_for

from .rules import (
    CAUSE_RULES,
    MARKET_CAUSE_ACTIONS,
    RECENT_CHANGE_ACTIONS,
    ActionTemplate,
    CauseRule,
    Direction,
)
from .schema import (
    CONFIDENCE_ORDER,
    PRIORITY_ORDER,
    ActionPriority,
    AnalysisContext,
    CampaignChange,
    CauseCategory,
    Confidence,
    PossibleCause,
    RootCauseAction,
    RootCauseAnalysis,
    Timeframe,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

SEVERITY_FACTOR = {
    AnomalySeverity.CRITICAL: 1.2,
    AnomalySeverity.WARNING: 1.1,
    AnomalySeverity.INFO: 0.9,
}

PRIORITY_MARKERS = {
    ActionPriority.CRITICAL: "[CRITICAL]",
    ActionPriority.HIGH: "[HIGH]",
    ActionPriority.MEDIUM: "[MEDIUM]",
    ActionPriority.LOW: "[LOW]",
}

TIMEFRAME_TEXT = {
    Timeframe.IMMEDIATE: "immediately",
    Timeframe.WITHIN_DAY: "within a day",
    Timeframe.WITHIN_WEEK: "within a week",
}

_CONFIDENCE_UP = {Confidence.LOW: Confidence.MEDIUM, Confidence.MEDIUM: Confidence.HIGH, Confidence.HIGH: Confidence.HIGH}
_CONFIDENCE_DOWN = {Confidence.HIGH: Confidence.MEDIUM, Confidence.MEDIUM: Confidence.LOW, Confidence.LOW: Confidence.LOW}

ContextInput = Union[AnalysisContext, Mapping[str, Any], None]


def magnitude_factor(abs_change: float) -> float:
    """Larger deviations make every matching cause more likely."""
    if abs_change > 50:
        return 1.15
    if abs_change > 30:
        return 1.1
    if abs_change < 10:
        return 0.85
    return 1.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _build_actions(cause_id: str, templates: Sequence[ActionTemplate]) -> List[RootCauseAction]:
    return [
        RootCauseAction(
            id=f"{cause_id}_action_{i}",
            priority=t.priority,
            action=t.action,
            description=t.description,
            estimated_impact=t.estimated_impact,
            timeframe=t.timeframe,
        )
        for i, t in enumerate(templates)
    ]


def _compare_causes(a: PossibleCause, b: PossibleCause) -> int:
    probability_diff = b.probability - a.probability
    if abs(probability_diff) > 0.1:
        return -1 if probability_diff < 0 else 1

    confidence_diff = CONFIDENCE_ORDER[b.confidence] - CONFIDENCE_ORDER[a.confidence]
    if confidence_diff != 0:
        return confidence_diff

    return b.max_action_priority - a.max_action_priority


class RootCauseAnalyzer:
    """
    Deterministic root-cause analyzer.

    Ranking rules:
    - Probability descending.
    - Causes within 0.1 probability of each other are ordered by confidence,
      then by their most urgent action.
    """

    def __init__(
        self,
        config: Optional[RootCauseConfig] = None,
        rules: Optional[Dict[MetricName, List[CauseRule]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or _default_config()
        self.rules = rules if rules is not None else CAUSE_RULES
        self.clock = clock or _utc_now

    def analyze_root_cause(self, anomaly: Anomaly, context: ContextInput = None) -> RootCauseAnalysis:
        """
        Analyze one anomaly.

        Args:
            anomaly: The anomaly to explain.
            context: Optional AnalysisContext (or a mapping validated into one).

        Returns:
            RootCauseAnalysis with ranked causes, urgency and next steps.

        Raises:
            pydantic.ValidationError: if the context mapping is malformed.
        """
        ctx = self._validate_context(context)

        causes = self._identify_causes(anomaly, ctx)
        ranked = sorted(causes, key=cmp_to_key(_compare_causes))
        top_causes = ranked[: self.config.max_top_causes]

        analysis = RootCauseAnalysis(
            anomaly_id=anomaly.id,
            metric=anomaly.metric,
            analyzed_at=self.clock(),
            top_causes=top_causes,
            all_causes=ranked,
            urgency_level=self._urgency(anomaly, top_causes),
            summary=self._summary(anomaly, top_causes),
            next_steps=self._next_steps(top_causes),
        )
        logger.debug(
            "Root cause analysis for %s: %d causes, urgency %s",
            anomaly.id,
            len(ranked),
            analysis.urgency_level.value,
        )
        return analysis

    def filter_causes_by_category(
        self, analysis: RootCauseAnalysis, category: CauseCategory
    ) -> List[PossibleCause]:
        return [c for c in analysis.all_causes if c.category == CauseCategory(category)]

    def get_high_priority_actions(
        self, analysis: RootCauseAnalysis, min_priority: ActionPriority = ActionPriority.HIGH
    ) -> List[RootCauseAction]:
        """Unique actions at or above min_priority, most urgent first."""
        threshold = PRIORITY_ORDER[ActionPriority(min_priority)]
        actions: List[RootCauseAction] = []
        seen = set()
        for cause in analysis.all_causes:
            for action in cause.actions:
                if PRIORITY_ORDER[action.priority] >= threshold and action.id not in seen:
                    actions.append(action)
                    seen.add(action.id)
        return sorted(actions, key=lambda a: PRIORITY_ORDER[a.priority], reverse=True)

    def _validate_context(self, context: ContextInput) -> Optional[AnalysisContext]:
        if context is None or isinstance(context, AnalysisContext):
            return context
        return AnalysisContext.model_validate(context)

    def _identify_causes(self, anomaly: Anomaly, ctx: Optional[AnalysisContext]) -> List[PossibleCause]:
        direction = Direction.INCREASE if anomaly.change_percent >= 0 else Direction.DECREASE
        recent = self._qualifying_changes(ctx)
        causes: List[PossibleCause] = []

        for rule in self.rules.get(anomaly.metric, []):
            if not rule.matches(direction, anomaly.severity):
                continue
            probability = self._probability(rule, anomaly, ctx, bool(recent))
            if probability < self.config.min_probability:
                continue
            causes.append(
                PossibleCause(
                    id=rule.id,
                    category=rule.category,
                    name=rule.name,
                    description=rule.description,
                    probability=probability,
                    confidence=self._confidence(rule.base_confidence, anomaly, ctx),
                    evidence=list(rule.evidence),
                    actions=_build_actions(rule.id, rule.actions),
                )
            )

        if ctx is not None:
            market_cause = self._market_cause(anomaly, ctx)
            if market_cause is not None:
                causes.append(market_cause)
        if recent:
            causes.append(self._recent_change_cause(recent))
        return causes

    def _probability(
        self,
        rule: CauseRule,
        anomaly: Anomaly,
        ctx: Optional[AnalysisContext],
        has_recent_changes: bool,
    ) -> float:
        probability = rule.base_probability
        probability *= SEVERITY_FACTOR[anomaly.severity]
        probability *= magnitude_factor(abs(anomaly.change_percent))

        if ctx is not None:
            if ctx.technical_issues and rule.category == CauseCategory.TECHNICAL:
                probability *= self.config.technical_issue_boost
            if ctx.competitor_activity and rule.category == CauseCategory.EXTERNAL:
                probability *= self.config.competitor_activity_boost
            if has_recent_changes and rule.category == CauseCategory.INTERNAL:
                probability *= self.config.recent_change_boost

        return min(probability, self.config.probability_cap)

    def _confidence(
        self, base: Confidence, anomaly: Anomaly, ctx: Optional[AnalysisContext]
    ) -> Confidence:
        if anomaly.z_score is not None and abs(anomaly.z_score) > 3:
            return _CONFIDENCE_UP[base]
        if ctx is None:
            return _CONFIDENCE_DOWN[base]
        return base

    def _qualifying_changes(self, ctx: Optional[AnalysisContext]) -> List[CampaignChange]:
        if ctx is None:
            return []
        lookback = timedelta(days=self.config.recent_change_lookback_days)
        return [
            c
            for c in ctx.recent_changes
            if timedelta(0) <= ctx.current_date - c.changed_at <= lookback
        ]

    def _market_cause(self, anomaly: Anomaly, ctx: AnalysisContext) -> Optional[PossibleCause]:
        calendar = MarketCalendar.for_date(ctx.current_date)
        info = calendar.get_date_event_info(ctx.current_date, ctx.industry)
        if not info.is_special_day:
            return None

        events = ", ".join(info.event_names)
        expected = info.combined_expected_change.for_key(change_key_for(anomaly.metric.value))
        return PossibleCause(
            id="market_special_day",
            category=CauseCategory.MARKET,
            name="Special day effect",
            description=f"Performance swings are expected during {events}.",
            probability=min(self.config.market_cause_probability, self.config.probability_cap),
            confidence=Confidence.HIGH,
            evidence=[
                f"Special days: {events}",
                f"Expected change range: {expected.min:g}% to {expected.max:g}%",
            ],
            actions=_build_actions("market_special_day", MARKET_CAUSE_ACTIONS),
        )

    def _recent_change_cause(self, changes: List[CampaignChange]) -> PossibleCause:
        return PossibleCause(
            id="recent_changes",
            category=CauseCategory.INTERNAL,
            name="Recent campaign changes",
            description="Recent changes to the campaign settings may have affected performance.",
            probability=min(self.config.recent_change_probability, self.config.probability_cap),
            confidence=Confidence.HIGH,
            evidence=[f"{c.type.value}: {c.description}" for c in changes],
            actions=_build_actions("recent_changes", RECENT_CHANGE_ACTIONS),
        )

    def _urgency(self, anomaly: Anomaly, top_causes: List[PossibleCause]) -> UrgencyLevel:
        if anomaly.severity == AnomalySeverity.CRITICAL:
            return UrgencyLevel.CRITICAL
        if any(a.priority == ActionPriority.CRITICAL for c in top_causes for a in c.actions):
            return UrgencyLevel.HIGH
        if anomaly.severity == AnomalySeverity.WARNING:
            if any(c.category == CauseCategory.TECHNICAL for c in top_causes):
                return UrgencyLevel.HIGH
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    def _summary(self, anomaly: Anomaly, top_causes: List[PossibleCause]) -> str:
        direction = "increased" if anomaly.change_percent >= 0 else "decreased"
        cause_names = ", ".join(c.name for c in top_causes) or "no known cause"
        first_action = "a detailed analysis"
        if top_causes and top_causes[0].actions:
            first_action = top_causes[0].actions[0].action
        return (
            f"{metric_label(anomaly.metric)} {direction} by {abs(anomaly.change_percent):.1f}%. "
            f"Likely causes: {cause_names}. "
            f"Recommended first step: {first_action}."
        )

    def _next_steps(self, top_causes: List[PossibleCause]) -> List[str]:
        steps: List[str] = []
        seen = set()
        for cause in top_causes:
            for action in cause.actions:
                if action.action in seen:
                    continue
                seen.add(action.action)
                steps.append(
                    f"{PRIORITY_MARKERS[action.priority]} {action.action}: "
                    f"{action.description} ({TIMEFRAME_TEXT[action.timeframe]})"
                )
                if len(steps) >= self.config.max_next_steps:
                    return steps
        return steps


def _default_config() -> RootCauseConfig:
    return config.rootcause
