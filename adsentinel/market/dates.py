"""
Date resolution for market events.

Fixed-date events are computed per year, Nth-weekday events (Black Friday,
Cyber Monday) with calendar arithmetic, and lunar holidays from a lookup
table of pre-computed Gregorian dates.
"""

from __future__ import annotations

import datetime as dt
import logging
from datetime import date, timedelta
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

LUNAR_NEW_YEAR_DATES: Dict[int, date] = {
    2024: date(2024, 2, 10),
    2025: date(2025, 1, 29),
    2026: date(2026, 2, 17),
    2027: date(2027, 2, 6),
    2028: date(2028, 1, 26),
    2029: date(2029, 2, 13),
    2030: date(2030, 2, 3),
}

CHUSEOK_DATES: Dict[int, date] = {
    2024: date(2024, 9, 17),
    2025: date(2025, 10, 6),
    2026: date(2026, 9, 25),
    2027: date(2027, 9, 15),
    2028: date(2028, 10, 3),
    2029: date(2029, 9, 22),
    2030: date(2030, 9, 12),
}

# (month, day) used when a year falls outside the lunar lookup tables.
LUNAR_FALLBACKS: Dict[str, Tuple[int, int]] = {
    "LUNAR_NEW_YEAR": (2, 1),
    "CHUSEOK": (9, 20),
}

FIXED_DATES: Dict[str, Tuple[int, int]] = {
    "NEW_YEAR": (1, 1),
    "INDEPENDENCE_DAY": (3, 1),
    "CHILDRENS_DAY": (5, 5),
    "PARENTS_DAY": (5, 8),
    "MEMORIAL_DAY": (6, 6),
    "LIBERATION_DAY": (8, 15),
    "NATIONAL_FOUNDATION_DAY": (10, 3),
    "HANGUL_DAY": (10, 9),
    "CHRISTMAS": (12, 25),
    "VALENTINES_DAY": (2, 14),
    "WHITE_DAY": (3, 14),
    "TEACHERS_DAY": (5, 15),
    "PEPERO_DAY": (11, 11),
    "SINGLES_DAY": (11, 11),
}

THURSDAY = 3


class ResolvedDate(BaseModel):
    """An event date for a given year; approximate dates came from a fallback."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    date: dt.date
    approximate: bool = False


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> date:
    """
    Return the n-th given weekday (Monday=0) of a month.

    Example: nth_weekday_of_month(2025, 11, THURSDAY, 4) -> 2025-11-27.
    """
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def black_friday(year: int) -> date:
    """Day after the fourth Thursday of November."""
    return nth_weekday_of_month(year, 11, THURSDAY, 4) + timedelta(days=1)


def cyber_monday(year: int) -> date:
    """Monday following Black Friday."""
    return black_friday(year) + timedelta(days=3)


def lunar_date(event_id: str, year: int) -> ResolvedDate:
    table = LUNAR_NEW_YEAR_DATES if event_id == "LUNAR_NEW_YEAR" else CHUSEOK_DATES
    resolved = table.get(year)
    if resolved is not None:
        return ResolvedDate(event_id=event_id, date=resolved)

    month, day = LUNAR_FALLBACKS[event_id]
    logger.warning(
        "No lunar date table entry for %s in %d; using approximate %02d-%02d",
        event_id,
        year,
        month,
        day,
    )
    return ResolvedDate(event_id=event_id, date=date(year, month, day), approximate=True)


def resolve_event_dates(year: int) -> List[ResolvedDate]:
    """Resolve every dated (non-seasonal) catalog event for one calendar year."""
    resolved = [
        ResolvedDate(event_id=event_id, date=date(year, month, day))
        for event_id, (month, day) in FIXED_DATES.items()
    ]
    resolved.append(lunar_date("LUNAR_NEW_YEAR", year))
    resolved.append(lunar_date("CHUSEOK", year))
    resolved.append(ResolvedDate(event_id="BLACK_FRIDAY", date=black_friday(year)))
    resolved.append(ResolvedDate(event_id="CYBER_MONDAY", date=cyber_monday(year)))
    return resolved
