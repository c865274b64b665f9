"""
Schema for alert dispatch.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from adsentinel.anomaly.schema import Anomaly, AnomalySeverity, MetricName


class AlertRecord(BaseModel):
    """
    A delivered alert.

    Records drive rate limiting and deduplication; they are kept only for the
    deduplication window.
    """

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    metric: MetricName
    severity: AnomalySeverity
    timestamp: datetime


class EmailMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    html: str


class SendResult(BaseModel):
    """Outcome reported by an email port."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error: Optional[str] = None


class AlertRequest(BaseModel):
    """
    Validated dispatch request.

    Fields:
    - user_id: owner of the campaigns
    - user_email: recipient address
    - user_name: greeting name, defaults to a generic salutation
    - anomalies: anomalies of this user's campaigns
    """

    user_id: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=3)
    user_name: Optional[str] = None
    anomalies: List[Anomaly] = Field(default_factory=list)

    @field_validator("user_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or not domain:
            raise ValueError(f"invalid email address: {value!r}")
        return value


class DispatchResult(BaseModel):
    """
    Outcome of one dispatch run.

    Fields:
    - sent: anomalies whose alert was delivered
    - skipped: anomalies filtered, rate limited, deduplicated, failed or cancelled
    - errors: one message per failed delivery
    - cancelled: True if the run stopped early on a cancel signal
    """

    sent: List[Anomaly] = Field(default_factory=list)
    skipped: List[Anomaly] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    cancelled: bool = False
