"""
Data module: campaign KPI schema, read-only ports and reader adapters.

    KPI store (external)
        ↓
    KPIReader / CampaignLister ports (src: adsentinel/data/ports.py)
        ↓
    KPISnapshot / MetricPoint series → AnomalyDetector
"""

from .ports import CampaignLister, KPIReader
from .readers import DataFrameKPIReader, InMemoryCampaignLister, InMemoryKPIReader
from .schema import CampaignSummary, DateRange, KPISnapshot, MetricName, MetricPoint

__all__ = [
    "KPIReader",
    "CampaignLister",
    "InMemoryKPIReader",
    "DataFrameKPIReader",
    "InMemoryCampaignLister",
    "KPISnapshot",
    "MetricPoint",
    "MetricName",
    "DateRange",
    "CampaignSummary",
]
