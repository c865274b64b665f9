"""
Human-readable anomaly messages and recommendations.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .schema import DetectionMethod, MetricName, Trend

MAX_RECOMMENDATIONS = 3

METRIC_LABELS: Dict[MetricName, str] = {
    MetricName.SPEND: "Spend",
    MetricName.IMPRESSIONS: "Impressions",
    MetricName.CLICKS: "Clicks",
    MetricName.CONVERSIONS: "Conversions",
    MetricName.CTR: "CTR",
    MetricName.CPA: "CPA",
    MetricName.ROAS: "ROAS",
    MetricName.CPC: "CPC",
    MetricName.CVR: "Conversion rate",
}

# (metric, is_spike) -> follow-up sentence appended to the message
_MESSAGE_HINTS: Dict[tuple, str] = {
    (MetricName.CPA, True): "Review campaign efficiency.",
    (MetricName.ROAS, False): "Review targeting and bidding strategy.",
    (MetricName.CTR, False): "Review ad creatives.",
    (MetricName.CONVERSIONS, False): "Check landing page and targeting.",
    (MetricName.ROAS, True): "Keep this strategy going!",
}

# (metric, is_spike) -> recommendations, most important first
_RECOMMENDATIONS: Dict[tuple, List[str]] = {
    (MetricName.CPA, True): [
        "Review target audience segmentation",
        "Run an A/B test on ad creatives",
        "Adjust the bidding strategy",
    ],
    (MetricName.ROAS, False): [
        "Verify conversion tracking setup",
        "Review landing page performance",
        "Monitor competitor activity",
    ],
    (MetricName.ROAS, True): [
        "Analyze what drove the improvement",
        "Apply the same strategy to similar campaigns",
    ],
    (MetricName.CTR, False): [
        "Refresh ad creatives",
        "Review targeting settings",
        "Check for ad fatigue",
    ],
    (MetricName.CONVERSIONS, False): [
        "Verify pixel and conversion tracking",
        "Check landing page load time",
        "Review product pricing competitiveness",
    ],
    (MetricName.SPEND, True): [
        "Check the daily budget limit",
        "Review bid caps",
        "Look for unexpected auction competition",
    ],
    (MetricName.SPEND, False): [
        "Check whether the campaign hit its budget cap",
        "Review delivery status and ad approvals",
    ],
    (MetricName.CPC, True): [
        "Review bid strategy and caps",
        "Check auction overlap with other campaigns",
    ],
    (MetricName.IMPRESSIONS, False): [
        "Check audience size and frequency",
        "Review ad approval and delivery status",
    ],
    (MetricName.CLICKS, False): [
        "Refresh ad creatives",
        "Review placement performance",
    ],
    (MetricName.CVR, False): [
        "Review the checkout and sign-up flow",
        "Check that the offer matches the ad promise",
    ],
}

_VOLATILE_RECOMMENDATIONS = [
    "Keep campaign settings consistent",
    "Check external factors such as seasonality and events",
]


def metric_label(metric: MetricName) -> str:
    return METRIC_LABELS[MetricName(metric)]


def build_message(
    metric: MetricName,
    change: float,
    method: DetectionMethod,
    trend: Optional[Trend] = None,
) -> str:
    """
    Build the one-line anomaly message.

    Example: "CPA rose 67%. Review campaign efficiency."
    """
    metric = MetricName(metric)
    is_spike = change > 0
    direction = "rose" if is_spike else "fell"
    message = f"{metric_label(metric)} {direction} {abs(change):.0f}%."

    hint = _MESSAGE_HINTS.get((metric, is_spike))
    if hint:
        message += f" {hint}"

    if trend == Trend.VOLATILE:
        message += " (performance is unstable)"
    elif trend == Trend.INCREASING and change < 0:
        message += " (drop within an upward trend)"
    elif trend == Trend.DECREASING and change > 0:
        message += " (rebound within a downward trend)"

    if method == DetectionMethod.MOVING_AVERAGE:
        message += " Deviates from the recent moving average."
    return message


def build_recommendations(
    metric: MetricName, is_spike: bool, trend: Optional[Trend] = None
) -> List[str]:
    """Up to three recommendations for a metric movement."""
    recommendations = list(_RECOMMENDATIONS.get((MetricName(metric), is_spike), []))
    if trend == Trend.VOLATILE:
        recommendations.extend(_VOLATILE_RECOMMENDATIONS)
    return recommendations[:MAX_RECOMMENDATIONS]
