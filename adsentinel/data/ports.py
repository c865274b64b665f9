"""
Read-only data ports consumed by the detector.

Storage, the ads API sync and campaign management live outside this package;
they are reached only through these interfaces.
"""

from abc import ABC, abstractmethod
from typing import List

from .schema import CampaignSummary, DateRange, KPISnapshot, MetricName, MetricPoint


class KPIReader(ABC):
    """
    Source of daily campaign KPIs.

    Implementations must return chronologically ordered results.
    """

    @abstractmethod
    def series_for(
        self, campaign_id: str, metric: MetricName, date_range: DateRange
    ) -> List[MetricPoint]:
        """Daily values of one metric within an inclusive date range."""
        pass

    @abstractmethod
    def latest_two(self, campaign_id: str) -> List[KPISnapshot]:
        """
        The two most recent snapshots as [previous, latest].

        Fewer than two elements are returned when history is that short.
        """
        pass


class CampaignLister(ABC):
    """Source of the campaigns a user currently runs."""

    @abstractmethod
    def active_campaigns(self, user_id: str) -> List[CampaignSummary]:
        pass
