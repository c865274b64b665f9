"""
Alert notification templates.

Rendering consumes a plain AlertView so that alert decisions never touch
presentation. Every user- or campaign-provided string is HTML-escaped.
"""

from __future__ import annotations

from html import escape
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from adsentinel.anomaly.messages import metric_label
from adsentinel.anomaly.schema import Anomaly, AnomalySeverity, DetectionMethod, MetricName, Trend
from adsentinel.market.events import ExpectedRange

SEVERITY_COLORS = {
    AnomalySeverity.CRITICAL: "#dc2626",
    AnomalySeverity.WARNING: "#f59e0b",
    AnomalySeverity.INFO: "#3b82f6",
}

SEVERITY_LABELS = {
    AnomalySeverity.CRITICAL: "Critical",
    AnomalySeverity.WARNING: "Warning",
    AnomalySeverity.INFO: "Info",
}

METHOD_LABELS = {
    DetectionMethod.ZSCORE: "Z-score analysis",
    DetectionMethod.IQR: "IQR (interquartile range) analysis",
    DetectionMethod.MOVING_AVERAGE: "Moving average analysis",
    DetectionMethod.THRESHOLD: "Day-over-day threshold",
}

TREND_LABELS = {
    Trend.INCREASING: "Increasing",
    Trend.DECREASING: "Decreasing",
    Trend.STABLE: "Stable",
    Trend.VOLATILE: "Volatile",
}

DEFAULT_GREETING_NAME = "there"


def format_metric_value(metric: MetricName, value: float) -> str:
    metric = MetricName(metric)
    if metric in (MetricName.SPEND, MetricName.CPA, MetricName.CPC):
        return f"{value:,.0f}"
    if metric == MetricName.ROAS:
        return f"{value:.2f}x"
    if metric in (MetricName.CTR, MetricName.CVR):
        return f"{value:.2f}%"
    return f"{value:,.0f}"


def _format_range(expected: Optional[ExpectedRange]) -> Optional[str]:
    if expected is None:
        return None
    return f"{expected.min:g}% to {expected.max:g}%"


class AlertView(BaseModel):
    """
    Presentation-ready alert data.

    All values are already formatted; the renderer only escapes and lays out.
    """

    model_config = ConfigDict(frozen=True)

    user_name: str
    campaign_name: str
    severity: AnomalySeverity
    severity_label: str
    severity_color: str
    message: str
    metric_label: str
    previous_value: str
    current_value: str
    change: str
    direction: str
    market_events: List[str] = Field(default_factory=list)
    expected_range: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)
    method_label: str
    detected_at: str
    z_score: Optional[str] = None
    trend_label: Optional[str] = None

    @classmethod
    def from_anomaly(cls, anomaly: Anomaly, user_name: Optional[str] = None) -> "AlertView":
        context = anomaly.market_context
        return cls(
            user_name=user_name or DEFAULT_GREETING_NAME,
            campaign_name=anomaly.campaign_name,
            severity=anomaly.severity,
            severity_label=SEVERITY_LABELS[anomaly.severity],
            severity_color=SEVERITY_COLORS[anomaly.severity],
            message=anomaly.message,
            metric_label=metric_label(anomaly.metric),
            previous_value=format_metric_value(anomaly.metric, anomaly.previous_value),
            current_value=format_metric_value(anomaly.metric, anomaly.current_value),
            change=f"{abs(anomaly.change_percent):.1f}%",
            direction="increase" if anomaly.change_percent >= 0 else "decrease",
            market_events=list(context.events) if context and context.is_special_day else [],
            expected_range=_format_range(context.expected_change_range) if context else None,
            recommendations=list(anomaly.recommendations),
            method_label=METHOD_LABELS[anomaly.detection_method],
            detected_at=anomaly.detected_at.strftime("%Y-%m-%d %H:%M %Z").strip(),
            z_score=f"{anomaly.z_score:.2f}" if anomaly.z_score is not None else None,
            trend_label=TREND_LABELS[anomaly.historical_trend] if anomaly.historical_trend else None,
        )


class AlertTemplateRenderer:
    """
    Renders subject lines and HTML bodies for anomaly alerts.
    """

    def __init__(self, brand_name: str = "AdSentinel", dashboard_url: str = "http://localhost:3000") -> None:
        self.brand_name = brand_name
        self.dashboard_url = dashboard_url.rstrip("/")

    def subject(self, view: AlertView) -> str:
        return f"[{self.brand_name}] {view.severity_label}: Campaign anomaly detected: {view.campaign_name}"

    def html(self, view: AlertView) -> str:
        color = view.severity_color
        brand = escape(self.brand_name)
        dashboard = escape(self.dashboard_url, quote=True)

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Campaign anomaly alert</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f9fafb;">
  <table role="presentation" style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 8px;">
    <tr>
      <td style="padding: 32px 32px 24px; background-color: #667eea; border-radius: 8px 8px 0 0;">
        <h1 style="margin: 0; color: #ffffff; font-size: 24px;">{brand}</h1>
        <p style="margin: 8px 0 0; color: #e0e7ff; font-size: 14px;">Campaign Anomaly Detection</p>
      </td>
    </tr>
    <tr>
      <td style="padding: 32px;">
        <p style="margin: 0 0 24px; color: #374151; font-size: 16px;">Hello {escape(view.user_name)},</p>
        <div style="background-color: {color}15; border-left: 4px solid {color}; padding: 16px; margin-bottom: 24px;">
          <h2 style="margin: 0 0 8px; color: {color}; font-size: 18px;">{escape(view.severity_label)}: {escape(view.message)}</h2>
          <p style="margin: 0; color: #6b7280; font-size: 14px;">Campaign: <strong>{escape(view.campaign_name)}</strong></p>
        </div>
        <table role="presentation" style="width: 100%; margin-bottom: 24px;">
          <tr>
            <td style="padding: 12px; background-color: #f9fafb; width: 50%;">
              <p style="margin: 0 0 4px; color: #6b7280; font-size: 12px;">Reference {escape(view.metric_label)}</p>
              <p style="margin: 0; color: #111827; font-size: 20px; font-weight: 600;">{escape(view.previous_value)}</p>
            </td>
            <td style="padding: 12px; background-color: #f9fafb; width: 50%;">
              <p style="margin: 0 0 4px; color: #6b7280; font-size: 12px;">Current {escape(view.metric_label)}</p>
              <p style="margin: 0; color: #111827; font-size: 20px; font-weight: 600;">{escape(view.current_value)}</p>
            </td>
          </tr>
        </table>
        <div style="text-align: center; padding: 16px; background-color: #fef3c7; margin-bottom: 24px;">
          <p style="margin: 0; color: #92400e; font-size: 14px;"><strong>{escape(view.change)} {escape(view.direction)}</strong></p>
        </div>
{self._market_section(view)}{self._recommendations_section(view)}{self._details_section(view)}
        <div style="margin-top: 32px; text-align: center;">
          <a href="{dashboard}/dashboard" style="display: inline-block; padding: 12px 32px; background-color: #667eea; color: #ffffff; text-decoration: none; border-radius: 6px;">Open dashboard</a>
        </div>
      </td>
    </tr>
    <tr>
      <td style="padding: 24px 32px; background-color: #f9fafb; text-align: center;">
        <p style="margin: 0; color: #6b7280; font-size: 12px;">
          This email was sent automatically by {brand}.<br>
          To change alert preferences visit the <a href="{dashboard}/settings" style="color: #667eea;">settings page</a>.
        </p>
      </td>
    </tr>
  </table>
</body>
</html>
"""

    def _market_section(self, view: AlertView) -> str:
        if not view.market_events:
            return ""
        events = escape(", ".join(view.market_events))
        range_note = f" Expected change range: {escape(view.expected_range)}." if view.expected_range else ""
        return (
            '        <div style="background-color: #fef3c7; border-left: 4px solid #f59e0b; padding: 16px; margin: 24px 0;">\n'
            '          <h3 style="margin: 0 0 8px; color: #92400e; font-size: 14px;">Market context</h3>\n'
            f'          <p style="margin: 0; color: #92400e; font-size: 13px;">{events} in effect.{range_note}</p>\n'
            "        </div>\n"
        )

    def _recommendations_section(self, view: AlertView) -> str:
        if not view.recommendations:
            return ""
        items = "".join(
            f'<li style="margin-bottom: 8px;">{escape(rec)}</li>' for rec in view.recommendations
        )
        return (
            '        <div style="margin-top: 24px;">\n'
            '          <h3 style="margin: 0 0 12px; color: #111827; font-size: 16px;">Recommended actions</h3>\n'
            f'          <ul style="margin: 0; padding-left: 20px; color: #4b5563; font-size: 14px;">{items}</ul>\n'
            "        </div>\n"
        )

    def _details_section(self, view: AlertView) -> str:
        lines = [
            f"Detection method: {escape(view.method_label)}",
            f"Detected at: {escape(view.detected_at)}",
        ]
        if view.z_score is not None:
            lines.append(f"Z-score: {escape(view.z_score)}")
        if view.trend_label:
            lines.append(f"Trend: {escape(view.trend_label)}")
        return (
            '        <div style="margin-top: 24px; padding: 16px; background-color: #f9fafb;">\n'
            '          <h3 style="margin: 0 0 8px; color: #6b7280; font-size: 12px; text-transform: uppercase;">Detection details</h3>\n'
            f'          <p style="margin: 0; color: #6b7280; font-size: 13px;">{"<br>".join(lines)}</p>\n'
            "        </div>\n"
        )
