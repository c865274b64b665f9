"""
Reader adapters for the data ports.

- InMemoryKPIReader: snapshots held in memory (tests, small batch jobs)
- DataFrameKPIReader: a pandas DataFrame export of the KPI table
- InMemoryCampaignLister: user -> campaigns mapping

Design:
- Readers never mutate their input
- Results are always chronological
- Malformed input is rejected at construction time
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from adsentinel.core.exceptions import DataValidationError

from .ports import CampaignLister, KPIReader
from .schema import CampaignSummary, DateRange, KPISnapshot, MetricName, MetricPoint

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ["campaign_id", "date", "impressions", "clicks", "conversions", "spend", "revenue"]


class InMemoryKPIReader(KPIReader):
    """KPI reader over a list of snapshots."""

    def __init__(self, snapshots: Iterable[KPISnapshot]):
        by_campaign: Dict[str, List[KPISnapshot]] = defaultdict(list)
        for snapshot in snapshots:
            by_campaign[snapshot.campaign_id].append(snapshot)
        self._snapshots = {
            campaign_id: sorted(items, key=lambda s: s.date)
            for campaign_id, items in by_campaign.items()
        }

    def series_for(
        self, campaign_id: str, metric: MetricName, date_range: DateRange
    ) -> List[MetricPoint]:
        return [
            MetricPoint(date=s.date, value=s.metric_value(metric))
            for s in self._snapshots.get(campaign_id, [])
            if date_range.contains(s.date)
        ]

    def latest_two(self, campaign_id: str) -> List[KPISnapshot]:
        return list(self._snapshots.get(campaign_id, [])[-2:])


def _safe_ratio(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    return (numerator / denominator.where(denominator != 0)).fillna(0.0)


class DataFrameKPIReader(KPIReader):
    """
    KPI reader over a pandas DataFrame.

    Expected columns: campaign_id, date, impressions, clicks, conversions,
    spend, revenue. Derived ratio metrics are computed once, vectorised.
    """

    def __init__(self, frame: pd.DataFrame):
        missing = [c for c in SNAPSHOT_COLUMNS if c not in frame.columns]
        if missing:
            raise DataValidationError(f"KPI frame is missing columns: {', '.join(missing)}")

        data = frame[SNAPSHOT_COLUMNS].copy()
        data["campaign_id"] = data["campaign_id"].astype(str)
        data["date"] = pd.to_datetime(data["date"]).dt.date
        for column in ["impressions", "clicks", "conversions", "spend", "revenue"]:
            data[column] = pd.to_numeric(data[column], errors="coerce").fillna(0)

        data["ctr"] = _safe_ratio(data["clicks"], data["impressions"]) * 100.0
        data["cvr"] = _safe_ratio(data["conversions"], data["clicks"]) * 100.0
        data["cpc"] = _safe_ratio(data["spend"], data["clicks"])
        data["cpa"] = _safe_ratio(data["spend"], data["conversions"])
        data["roas"] = _safe_ratio(data["revenue"], data["spend"])

        self._frame = data.sort_values(["campaign_id", "date"], kind="stable").reset_index(drop=True)
        logger.debug("Loaded KPI frame with %d rows", len(self._frame))

    def _campaign_rows(self, campaign_id: str) -> pd.DataFrame:
        return self._frame[self._frame["campaign_id"] == campaign_id]

    def series_for(
        self, campaign_id: str, metric: MetricName, date_range: DateRange
    ) -> List[MetricPoint]:
        rows = self._campaign_rows(campaign_id)
        rows = rows[(rows["date"] >= date_range.start) & (rows["date"] <= date_range.end)]
        column = MetricName(metric).value
        return [
            MetricPoint(date=day, value=float(value))
            for day, value in zip(rows["date"], rows[column])
        ]

    def latest_two(self, campaign_id: str) -> List[KPISnapshot]:
        rows = self._campaign_rows(campaign_id).tail(2)
        return [
            KPISnapshot(
                campaign_id=str(row.campaign_id),
                date=row.date,
                impressions=int(row.impressions),
                clicks=int(row.clicks),
                conversions=int(row.conversions),
                spend=float(row.spend),
                revenue=float(row.revenue),
            )
            for row in rows.itertuples(index=False)
        ]


class InMemoryCampaignLister(CampaignLister):
    """Campaign lister over a user -> campaigns mapping."""

    def __init__(self, campaigns_by_user: Mapping[str, Iterable[CampaignSummary]]):
        self._campaigns = {user: list(items) for user, items in campaigns_by_user.items()}

    def active_campaigns(self, user_id: str) -> List[CampaignSummary]:
        return list(self._campaigns.get(user_id, []))
