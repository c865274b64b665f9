"""
Declarative cause rules.

Each metric maps to a list of CauseRule entries. A rule applies when the
anomaly's direction and severity match its triggers; adding a cause is a
data change, not a code change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from adsentinel.anomaly.schema import AnomalySeverity, MetricName

from .schema import ActionPriority, CauseCategory, Confidence, Timeframe


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


BASE_PROBABILITY = {
    Confidence.HIGH: 0.7,
    Confidence.MEDIUM: 0.5,
    Confidence.LOW: 0.3,
}

ALL_SEVERITIES: FrozenSet[AnomalySeverity] = frozenset(AnomalySeverity)
WARNING_UP: FrozenSet[AnomalySeverity] = frozenset({AnomalySeverity.WARNING, AnomalySeverity.CRITICAL})
INFO_WARNING: FrozenSet[AnomalySeverity] = frozenset({AnomalySeverity.INFO, AnomalySeverity.WARNING})


@dataclass(frozen=True)
class ActionTemplate:
    priority: ActionPriority
    action: str
    description: str
    estimated_impact: str
    timeframe: Timeframe


@dataclass(frozen=True)
class CauseRule:
    """
    Template for a possible cause.

    Notes:
    - direction / severities are the triggers; both must match.
    - base_confidence sets the base probability (see BASE_PROBABILITY).
    """

    id: str
    category: CauseCategory
    name: str
    description: str
    direction: Direction
    severities: FrozenSet[AnomalySeverity]
    base_confidence: Confidence
    evidence: Tuple[str, ...]
    actions: Tuple[ActionTemplate, ...]

    @property
    def base_probability(self) -> float:
        return BASE_PROBABILITY[self.base_confidence]

    def matches(self, direction: Direction, severity: AnomalySeverity) -> bool:
        return self.direction == direction and AnomalySeverity(severity) in self.severities


def _act(priority: str, action: str, description: str, impact: str, timeframe: str) -> ActionTemplate:
    return ActionTemplate(
        priority=ActionPriority(priority),
        action=action,
        description=description,
        estimated_impact=impact,
        timeframe=Timeframe(timeframe),
    )


CAUSE_RULES: Dict[MetricName, List[CauseRule]] = {
    MetricName.SPEND: [
        CauseRule(
            id="spend_budget_cap",
            category=CauseCategory.INTERNAL,
            name="Budget cap reached",
            description="The daily or lifetime budget was exhausted and delivery stopped.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Check budget pacing", "Check campaign delivery status"),
            actions=(
                _act("high", "Increase budget", "Raise the daily budget to regain delivery.", "More impressions", "immediate"),
                _act("medium", "Rebalance spend", "Move budget from weak ad sets to efficient ones.", "Better ROAS", "within_day"),
            ),
        ),
        CauseRule(
            id="spend_auction_competition",
            category=CauseCategory.EXTERNAL,
            name="Auction competition",
            description="Competitors increased spend and the auction became more expensive.",
            direction=Direction.INCREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("CPM increase", "Higher ad volume in the industry"),
            actions=(
                _act("high", "Adjust bidding", "Switch from lowest cost to a cost cap bid strategy.", "Stable costs", "within_day"),
                _act("medium", "Expand audience", "Target audiences with less competition.", "Lower CPM", "within_week"),
            ),
        ),
        CauseRule(
            id="spend_seasonal_surge",
            category=CauseCategory.MARKET,
            name="Seasonal demand surge",
            description="Seasonal demand pushed ad spend up.",
            direction=Direction.INCREASE,
            severities=ALL_SEVERITIES,
            base_confidence=Confidence.HIGH,
            evidence=("Seasonal event in effect", "Compare with the same period last year"),
            actions=(
                _act("medium", "Ride the trend", "Use the seasonal demand to maximise revenue.", "Revenue growth", "within_week"),
                _act("high", "Seasonal creatives", "Prepare creatives that fit the season.", "Better CTR", "immediate"),
            ),
        ),
    ],
    MetricName.IMPRESSIONS: [
        CauseRule(
            id="imp_audience_saturation",
            category=CauseCategory.INTERNAL,
            name="Audience saturation",
            description="Most of the target audience has already seen the ads.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Rising frequency", "Flat reach"),
            actions=(
                _act("high", "Expand targeting", "Add lookalike audiences or broaden interests.", "Recovered impressions", "within_week"),
                _act("medium", "Refresh creatives", "Add new creatives to reduce ad fatigue.", "Stable CTR", "within_day"),
            ),
        ),
        CauseRule(
            id="imp_algorithm_learning",
            category=CauseCategory.TECHNICAL,
            name="Delivery learning phase",
            description="The delivery algorithm is in its learning phase.",
            direction=Direction.DECREASE,
            severities=INFO_WARNING,
            base_confidence=Confidence.MEDIUM,
            evidence=("Campaign started within 7 days", "Ad set status: learning"),
            actions=(
                _act("low", "Wait for learning", "Avoid edits until the learning phase completes.", "Completed optimisation", "within_week"),
                _act("medium", "Check conversion volume", "Make sure enough conversions are being collected.", "Faster learning", "immediate"),
            ),
        ),
        CauseRule(
            id="imp_policy_violation",
            category=CauseCategory.TECHNICAL,
            name="Possible policy restriction",
            description="Delivery may be limited by an ad policy violation.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("Ad rejection notices", "Account quality warnings"),
            actions=(
                _act("critical", "Review policy status", "Check the ads manager for policy violation notices.", "Restored delivery", "immediate"),
                _act("high", "Request review", "Request a review when the rejection is unjustified.", "Ad approval", "within_day"),
            ),
        ),
    ],
    MetricName.CLICKS: [
        CauseRule(
            id="click_creative_fatigue",
            category=CauseCategory.INTERNAL,
            name="Creative fatigue",
            description="Users respond less to creatives they have seen repeatedly.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Frequency of 3 or more", "Sustained CTR decline"),
            actions=(
                _act("high", "Add new creatives", "Add new images, videos and copy.", "Recovered CTR", "immediate"),
                _act("medium", "A/B test creatives", "Test several creative versions to find the best one.", "Better performance", "within_week"),
            ),
        ),
        CauseRule(
            id="click_targeting_mismatch",
            category=CauseCategory.INTERNAL,
            name="Targeting mismatch",
            description="Ads are reaching people who are not interested.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("Broad targeting", "Demographic mismatch"),
            actions=(
                _act("high", "Narrow targeting", "Use more specific interest and behaviour signals.", "Better CTR", "within_week"),
                _act("medium", "Audience insights", "Analyse who responded to the ads.", "Optimised targeting", "immediate"),
            ),
        ),
    ],
    MetricName.CONVERSIONS: [
        CauseRule(
            id="conv_pixel_issue",
            category=CauseCategory.TECHNICAL,
            name="Pixel tracking failure",
            description="The tracking pixel is not recording conversions correctly.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Drop in pixel events", "Recent website changes"),
            actions=(
                _act("critical", "Verify pixel", "Check that the pixel fires with a pixel helper.", "Restored tracking", "immediate"),
                _act("high", "Check events", "Confirm events are received in the events manager.", "Accurate data", "immediate"),
            ),
        ),
        CauseRule(
            id="conv_landing_issue",
            category=CauseCategory.INTERNAL,
            name="Landing page regression",
            description="The landing page is slow or hard to use.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("High bounce rate", "Short time on page"),
            actions=(
                _act("high", "Run a speed test", "Measure page speed with a page speed tool.", "Better conversion rate", "immediate"),
                _act("medium", "Check mobile layout", "Make sure the landing page renders correctly on mobile.", "More mobile conversions", "within_day"),
            ),
        ),
        CauseRule(
            id="conv_checkout_friction",
            category=CauseCategory.INTERNAL,
            name="Checkout friction",
            description="Users abandon the purchase during checkout.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("Lower purchase to add-to-cart ratio", "Checkout step abandonment"),
            actions=(
                _act("high", "Simplify checkout", "Reduce checkout steps and allow guest checkout.", "10-20% better conversion rate", "within_week"),
                _act("medium", "Add payment options", "Offer more payment methods.", "Higher checkout completion", "within_week"),
            ),
        ),
        CauseRule(
            id="conv_market_downturn",
            category=CauseCategory.MARKET,
            name="Market demand decline",
            description="Overall market demand has declined.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.LOW,
            evidence=("Industry-wide trend", "Lower search volume"),
            actions=(
                _act("medium", "Diversify products", "Consider product lines with stronger demand.", "Stable revenue", "within_week"),
                _act("high", "Focus on retention", "Prioritise existing customers over acquisition.", "Higher LTV", "immediate"),
            ),
        ),
    ],
    MetricName.CTR: [
        CauseRule(
            id="ctr_creative_relevance",
            category=CauseCategory.INTERNAL,
            name="Creative relevance decay",
            description="The creative no longer matches the audience's interests.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Lower relevance score", "Lower quality ranking"),
            actions=(
                _act("high", "Improve copy", "Address the audience's problems and needs directly.", "20-50% better CTR", "immediate"),
                _act("medium", "Refresh visuals", "Use eye-catching images and video.", "Better CTR", "immediate"),
            ),
        ),
        CauseRule(
            id="ctr_placement_issue",
            category=CauseCategory.INTERNAL,
            name="Placement mix",
            description="Delivery is concentrated on low-performing placements.",
            direction=Direction.DECREASE,
            severities=INFO_WARNING,
            base_confidence=Confidence.MEDIUM,
            evidence=("Per-placement performance", "Automatic placements enabled"),
            actions=(
                _act("medium", "Analyse placements", "Exclude placements that underperform.", "Better CTR", "within_week"),
                _act("low", "Manual placements", "Select only the placements that perform well.", "Focused CTR gains", "immediate"),
            ),
        ),
    ],
    MetricName.CPA: [
        CauseRule(
            id="cpa_competition_increase",
            category=CauseCategory.EXTERNAL,
            name="Increased competition",
            description="More advertisers are targeting the same audience.",
            direction=Direction.INCREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("CPM increase", "Higher ad volume in the industry"),
            actions=(
                _act("high", "Differentiate", "Emphasise a value proposition competitors lack.", "Better conversion rate", "within_week"),
                _act("medium", "Niche targeting", "Find segmented audiences with less competition.", "Lower CPA", "within_week"),
            ),
        ),
        CauseRule(
            id="cpa_funnel_leak",
            category=CauseCategory.INTERNAL,
            name="Funnel leak",
            description="Users drop out at a specific step of the conversion funnel.",
            direction=Direction.INCREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Step-by-step conversion rates", "Drop-off points"),
            actions=(
                _act("high", "Analyse funnel", "Measure the drop-off rate of each funnel step.", "Problem step identified", "immediate"),
                _act("critical", "Remove friction", "Fix the UX of the steps with the highest drop-off.", "20-40% lower CPA", "within_week"),
            ),
        ),
    ],
    MetricName.ROAS: [
        CauseRule(
            id="roas_attribution_delay",
            category=CauseCategory.TECHNICAL,
            name="Attribution delay",
            description="Conversions take time to be attributed to ads.",
            direction=Direction.DECREASE,
            severities=INFO_WARNING,
            base_confidence=Confidence.MEDIUM,
            evidence=("Recent campaign changes", "7-day attribution window"),
            actions=(
                _act("low", "Wait for attribution", "Wait until conversion data is complete.", "ROAS normalises", "within_week"),
                _act("medium", "Check attribution window", "Review the attribution window settings.", "Accurate data", "immediate"),
            ),
        ),
        CauseRule(
            id="roas_price_change",
            category=CauseCategory.INTERNAL,
            name="Price or product change",
            description="Prices or the product mix changed.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.MEDIUM,
            evidence=("Change in average order value", "Product mix change history"),
            actions=(
                _act("medium", "Analyse AOV", "Analyse the change in average order value.", "Cause identified", "immediate"),
                _act("medium", "Bundle offers", "Raise AOV with bundles and upsells.", "Better ROAS", "within_week"),
            ),
        ),
    ],
    MetricName.CPC: [
        CauseRule(
            id="cpc_bid_competition",
            category=CauseCategory.EXTERNAL,
            name="Bid competition",
            description="Bidding for the same audience became more competitive.",
            direction=Direction.INCREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("CPM rising alongside CPC", "Higher suggested bids"),
            actions=(
                _act("high", "Change bid strategy", "Try switching between manual and automatic bidding.", "Optimised CPC", "within_week"),
                _act("medium", "Improve ad quality", "Raise ad quality to win auctions more cheaply.", "Lower CPC", "within_week"),
            ),
        ),
    ],
    MetricName.CVR: [
        CauseRule(
            id="cvr_user_experience",
            category=CauseCategory.INTERNAL,
            name="User experience issue",
            description="The website has usability problems.",
            direction=Direction.DECREASE,
            severities=WARNING_UP,
            base_confidence=Confidence.HIGH,
            evidence=("Shorter sessions", "Higher bounce rate"),
            actions=(
                _act("high", "UX audit", "Review the usability of the main conversion paths.", "Better conversion rate", "within_week"),
                _act("critical", "Optimise speed", "Bring page load time under 3 seconds.", "About 7% CVR per second saved", "within_week"),
            ),
        ),
        CauseRule(
            id="cvr_offer_mismatch",
            category=CauseCategory.INTERNAL,
            name="Offer mismatch",
            description="The ad and the landing page do not tell the same story.",
            direction=Direction.DECREASE,
            severities=ALL_SEVERITIES,
            base_confidence=Confidence.MEDIUM,
            evidence=("High bounce rate", "Low engagement"),
            actions=(
                _act("high", "Match the message", "Align the ad copy with the landing page.", "Better CVR", "immediate"),
                _act("medium", "Dedicated landing page", "Build a landing page for each campaign.", "20-50% better CVR", "within_week"),
            ),
        ),
    ],
}

MARKET_CAUSE_ACTIONS: Tuple[ActionTemplate, ...] = (
    _act("low", "Monitor the trend", "Keep monitoring performance while the event lasts.", "Normal pattern confirmed", "within_week"),
    _act("medium", "Apply a seasonal strategy", "Adapt the campaign strategy to the season.", "Maximised seasonal revenue", "immediate"),
)

RECENT_CHANGE_ACTIONS: Tuple[ActionTemplate, ...] = (
    _act("high", "Review changes", "Review recent changes and roll back if needed.", "Cause identified", "immediate"),
    _act("medium", "A/B test the change", "Compare before and after with an A/B test.", "Change effect verified", "within_week"),
)


def rules_for(metric: MetricName) -> List[CauseRule]:
    return CAUSE_RULES.get(MetricName(metric), [])
