"""
Campaign KPI schema.

Daily KPI snapshots are the raw input of the detector. Ratio metrics (CTR,
CVR, CPC, CPA, ROAS) are derived on read and are 0.0 whenever their
denominator is 0.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MetricName(str, Enum):
    """Campaign KPIs the detector understands."""

    SPEND = "spend"
    IMPRESSIONS = "impressions"
    CLICKS = "clicks"
    CONVERSIONS = "conversions"
    CTR = "ctr"
    CPA = "cpa"
    ROAS = "roas"
    CPC = "cpc"
    CVR = "cvr"


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


class KPISnapshot(BaseModel):
    """
    One day of delivery for one campaign.

    Attributes:
        campaign_id: campaign identifier
        date: reporting day
        impressions / clicks / conversions: delivery counts
        spend: amount spent in account currency
        revenue: attributed conversion value in account currency

    Notes:
        - ctr and cvr are percentages (clicks / impressions * 100)
        - roas is revenue / spend
    """

    model_config = ConfigDict(frozen=True)

    campaign_id: str = Field(..., min_length=1)
    date: dt.date
    impressions: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)
    conversions: int = Field(0, ge=0)
    spend: float = Field(0.0, ge=0.0)
    revenue: float = Field(0.0, ge=0.0)

    @property
    def ctr(self) -> float:
        return _ratio(self.clicks, self.impressions) * 100.0

    @property
    def cvr(self) -> float:
        return _ratio(self.conversions, self.clicks) * 100.0

    @property
    def cpc(self) -> float:
        return _ratio(self.spend, self.clicks)

    @property
    def cpa(self) -> float:
        return _ratio(self.spend, self.conversions)

    @property
    def roas(self) -> float:
        return _ratio(self.revenue, self.spend)

    def metric_value(self, metric: Union[MetricName, str]) -> float:
        """Return the value of a metric for this snapshot."""
        return float(getattr(self, MetricName(metric).value))


class MetricPoint(BaseModel):
    """A single (date, value) observation of one metric."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    value: float


class DateRange(BaseModel):
    """Inclusive date range."""

    model_config = ConfigDict(frozen=True)

    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    @classmethod
    def ending_on(cls, end: dt.date, days: int) -> "DateRange":
        """Range of `days` days ending on (and including) `end`."""
        return cls(start=end - dt.timedelta(days=days - 1), end=end)

    def contains(self, value: dt.date) -> bool:
        return self.start <= value <= self.end


class CampaignSummary(BaseModel):
    """Minimal campaign identity returned by a campaign lister."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
