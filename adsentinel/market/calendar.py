"""
Market calendar.

Answers, for a date and optional industry, which market events are in effect
and what percentage change in spend, conversions and CTR should be expected.
A calendar is an immutable value scoped to one year; build one per evaluation
and pass it to the components that need it.
"""

from __future__ import annotations

import datetime as dt
import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from adsentinel.core.exceptions import DataValidationError

from .dates import ResolvedDate, resolve_event_dates
from .events import EVENT_CATALOG, SEASONAL_EVENTS, SEASONAL_MONTHS, ExpectedRange, MarketEvent

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


class ChangeKey(str, Enum):
    """Expected-change dimension a metric is compared against."""

    SPEND = "spend"
    CONVERSION = "conversion"
    CTR = "ctr"


METRIC_CHANGE_KEYS: Dict[str, ChangeKey] = {
    "spend": ChangeKey.SPEND,
    "impressions": ChangeKey.SPEND,
    "clicks": ChangeKey.SPEND,
    "cpc": ChangeKey.SPEND,
    "conversions": ChangeKey.CONVERSION,
    "cpa": ChangeKey.CONVERSION,
    "roas": ChangeKey.CONVERSION,
    "cvr": ChangeKey.CONVERSION,
    "ctr": ChangeKey.CTR,
}

_ZERO_RANGE = ExpectedRange(min=0, max=0)


def change_key_for(metric: Union[str, ChangeKey]) -> ChangeKey:
    """Map a metric name (or change key) to its expected-change dimension."""
    key = getattr(metric, "value", metric)
    if key in METRIC_CHANGE_KEYS:
        return METRIC_CHANGE_KEYS[key]
    try:
        return ChangeKey(key)
    except ValueError:
        raise DataValidationError(f"Unknown metric for market calendar: {metric!r}") from None


def normalize_date(value: DateLike) -> date:
    """Drop the time of day so comparisons happen at day granularity."""
    if isinstance(value, datetime):
        return value.date()
    return value


class CombinedExpectedChange(BaseModel):
    """Union envelope of the expected ranges of every event in effect."""

    model_config = ConfigDict(frozen=True)

    spend: ExpectedRange = _ZERO_RANGE
    conversion: ExpectedRange = _ZERO_RANGE
    ctr: ExpectedRange = _ZERO_RANGE

    def for_key(self, key: ChangeKey) -> ExpectedRange:
        return getattr(self, key.value)


class DateEventInfo(BaseModel):
    """
    Events in effect on one date.

    Fields:
    - events: industry-weighted events whose effect window covers the date
    - is_special_day: True if at least one event is in effect
    - combined_expected_change: union envelope of the events' ranges
    - approximate: True if any event date came from a lunar fallback
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    events: List[MarketEvent] = Field(default_factory=list)
    is_special_day: bool = False
    combined_expected_change: CombinedExpectedChange = CombinedExpectedChange()
    approximate: bool = False

    @property
    def event_names(self) -> List[str]:
        return [e.name for e in self.events]


def combine_ranges(events: List[MarketEvent]) -> CombinedExpectedChange:
    """
    Combine overlapping events by union envelope.

    min is the minimum of all mins and max the maximum of all maxes; ranges
    are never summed.
    """
    if not events:
        return CombinedExpectedChange()

    def envelope(ranges: List[ExpectedRange]) -> ExpectedRange:
        return ExpectedRange(min=min(r.min for r in ranges), max=max(r.max for r in ranges))

    return CombinedExpectedChange(
        spend=envelope([e.expected_spend_change for e in events]),
        conversion=envelope([e.expected_conversion_change for e in events]),
        ctr=envelope([e.expected_ctr_change for e in events]),
    )


class MarketCalendar:
    """
    Year-scoped market calendar.

    Occurrences are resolved for the neighbouring years as well so that lead
    and trail windows crossing a year boundary (e.g. New Year's lead day on
    December 31) are honoured.
    """

    def __init__(self, year: int) -> None:
        self._year = year
        occurrences: List[Tuple[MarketEvent, ResolvedDate]] = []
        for y in (year - 1, year, year + 1):
            for resolved in resolve_event_dates(y):
                occurrences.append((EVENT_CATALOG[resolved.event_id], resolved))
        self._occurrences: Tuple[Tuple[MarketEvent, ResolvedDate], ...] = tuple(occurrences)

    @classmethod
    def for_date(cls, value: DateLike) -> "MarketCalendar":
        return cls(normalize_date(value).year)

    @property
    def year(self) -> int:
        return self._year

    def occurrences(self) -> List[ResolvedDate]:
        """Resolved event dates that fall inside this calendar's year."""
        return sorted(
            (r for _, r in self._occurrences if r.date.year == self._year),
            key=lambda r: (r.date, r.event_id),
        )

    def get_date_event_info(self, value: DateLike, industry: Optional[str] = None) -> DateEventInfo:
        target = normalize_date(value)
        if abs(target.year - self._year) > 1:
            logger.debug("Date %s is outside calendar year %d window", target, self._year)

        events: List[MarketEvent] = []
        approximate = False
        for event, resolved in self._occurrences:
            start = resolved.date - timedelta(days=event.lead_days)
            end = resolved.date + timedelta(days=event.trail_days)
            if start <= target <= end:
                events.append(event)
                approximate = approximate or resolved.approximate

        for event_id, months in SEASONAL_MONTHS.items():
            if target.month in months:
                events.append(SEASONAL_EVENTS[event_id])

        weighted = [e.weighted(industry) for e in events]
        return DateEventInfo(
            date=target,
            events=weighted,
            is_special_day=bool(weighted),
            combined_expected_change=combine_ranges(weighted),
            approximate=approximate,
        )

    def is_special_day(self, value: DateLike, industry: Optional[str] = None) -> bool:
        return self.get_date_event_info(value, industry).is_special_day

    def get_special_days_in_range(
        self, start: DateLike, end: DateLike, industry: Optional[str] = None
    ) -> List[DateEventInfo]:
        current = normalize_date(start)
        last = normalize_date(end)
        special: List[DateEventInfo] = []
        while current <= last:
            info = self.get_date_event_info(current, industry)
            if info.is_special_day:
                special.append(info)
            current += timedelta(days=1)
        return special

    def expected_range(
        self, value: DateLike, metric: Union[str, ChangeKey], industry: Optional[str] = None
    ) -> Optional[ExpectedRange]:
        """Expected change range for a metric, or None on ordinary days."""
        info = self.get_date_event_info(value, industry)
        if not info.is_special_day:
            return None
        return info.combined_expected_change.for_key(change_key_for(metric))

    def is_change_within_expected_range(
        self,
        value: DateLike,
        metric: Union[str, ChangeKey],
        change_percent: float,
        industry: Optional[str] = None,
    ) -> bool:
        expected = self.expected_range(value, metric, industry)
        if expected is None:
            return False
        return expected.contains(change_percent)

    def get_adjusted_threshold(
        self,
        value: DateLike,
        base_threshold: float,
        metric: Union[str, ChangeKey],
        is_positive: bool,
        industry: Optional[str] = None,
    ) -> float:
        """
        Widen a detection threshold on special days.

        Positive checks add the range max, negative checks add |range min|.
        """
        expected = self.expected_range(value, metric, industry)
        if expected is None:
            return base_threshold
        adjustment = expected.max if is_positive else abs(expected.min)
        return base_threshold + adjustment
