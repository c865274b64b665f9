"""
Market module: recurring market events and their expected KPI impact.
"""

from .calendar import (
    ChangeKey,
    CombinedExpectedChange,
    DateEventInfo,
    MarketCalendar,
    change_key_for,
    combine_ranges,
)
from .dates import black_friday, cyber_monday, nth_weekday_of_month, resolve_event_dates
from .events import EVENT_CATALOG, EventCategory, ExpectedRange, ImpactType, MarketEvent

__all__ = [
    "MarketCalendar",
    "DateEventInfo",
    "CombinedExpectedChange",
    "ChangeKey",
    "change_key_for",
    "combine_ranges",
    "MarketEvent",
    "EventCategory",
    "ImpactType",
    "ExpectedRange",
    "EVENT_CATALOG",
    "black_friday",
    "cyber_monday",
    "nth_weekday_of_month",
    "resolve_event_dates",
]
