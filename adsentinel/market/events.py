"""
Static catalog of recurring market events.

Each event carries the percentage change in spend, conversions and CTR that
advertisers typically see while it is in effect, the number of days before
and after the event date it influences, and optional per-industry weights
(1.0 = standard impact, >1.0 = stronger impact).
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExpectedRange(BaseModel):
    """Expected percentage change range, inclusive on both ends."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float

    def contains(self, change_percent: float) -> bool:
        return self.min <= change_percent <= self.max


class EventCategory(str, Enum):
    PUBLIC_HOLIDAY = "public_holiday"
    COMMERCIAL = "commercial"
    SEASONAL = "seasonal"
    INDUSTRY_SPECIFIC = "industry_specific"


class ImpactType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    MIXED = "mixed"


class MarketEvent(BaseModel):
    """
    A recurring market event.

    Fields:
    - event_id: stable catalog key (e.g. "CHRISTMAS")
    - expected_*_change: expected percent change while the event is in effect
    - lead_days / trail_days: days before / after the event date it influences
    - industry_weights: multipliers applied to both ends of every range
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    name: str
    category: EventCategory
    impact_type: ImpactType
    expected_spend_change: ExpectedRange
    expected_conversion_change: ExpectedRange
    expected_ctr_change: ExpectedRange
    lead_days: int = Field(0, ge=0)
    trail_days: int = Field(0, ge=0)
    industry_weights: Dict[str, float] = Field(default_factory=dict)
    description: str = ""

    def weight_for(self, industry: Optional[str]) -> float:
        if not industry:
            return 1.0
        return self.industry_weights.get(industry, 1.0)

    def weighted(self, industry: Optional[str]) -> "MarketEvent":
        """Return a copy with every expected range scaled by the industry weight."""
        weight = self.weight_for(industry)
        if weight == 1.0:
            return self

        def scale(r: ExpectedRange) -> ExpectedRange:
            return ExpectedRange(min=round(r.min * weight), max=round(r.max * weight))

        return self.model_copy(
            update={
                "expected_spend_change": scale(self.expected_spend_change),
                "expected_conversion_change": scale(self.expected_conversion_change),
                "expected_ctr_change": scale(self.expected_ctr_change),
            }
        )


def _event(
    event_id: str,
    name: str,
    category: EventCategory,
    impact: ImpactType,
    spend: tuple,
    conversion: tuple,
    ctr: tuple,
    lead: int,
    trail: int,
    weights: Optional[Dict[str, float]] = None,
    description: str = "",
) -> MarketEvent:
    return MarketEvent(
        event_id=event_id,
        name=name,
        category=category,
        impact_type=impact,
        expected_spend_change=ExpectedRange(min=spend[0], max=spend[1]),
        expected_conversion_change=ExpectedRange(min=conversion[0], max=conversion[1]),
        expected_ctr_change=ExpectedRange(min=ctr[0], max=ctr[1]),
        lead_days=lead,
        trail_days=trail,
        industry_weights=weights or {},
        description=description,
    )


_H = EventCategory.PUBLIC_HOLIDAY
_C = EventCategory.COMMERCIAL
_S = EventCategory.SEASONAL
_POS = ImpactType.POSITIVE
_NEG = ImpactType.NEGATIVE
_MIX = ImpactType.MIXED


PUBLIC_HOLIDAYS: Dict[str, MarketEvent] = {
    e.event_id: e
    for e in [
        _event("NEW_YEAR", "New Year", _H, _NEG, (-40, -20), (-50, -30), (-20, -5), 1, 1,
               description="Post-holiday rest lowers ad performance"),
        _event("LUNAR_NEW_YEAR", "Lunar New Year", _H, _MIX, (-30, 50), (-40, 30), (-20, 10), 7, 3,
               {"ecommerce": 1.3, "food_beverage": 1.5, "fashion": 1.2, "beauty": 1.1},
               "Gift season lifts some industries while overall traffic dips"),
        _event("INDEPENDENCE_DAY", "Independence Movement Day", _H, _NEG, (-20, -10), (-25, -10), (-15, -5), 0, 0),
        _event("CHILDRENS_DAY", "Children's Day", _H, _POS, (10, 60), (20, 80), (5, 25), 14, 1,
               {"ecommerce": 1.5, "education": 1.3, "food_beverage": 1.2},
               "Gift season for children's products"),
        _event("PARENTS_DAY", "Parents' Day", _H, _POS, (10, 40), (15, 50), (5, 15), 7, 0,
               {"beauty": 1.4, "fashion": 1.3, "food_beverage": 1.2}),
        _event("MEMORIAL_DAY", "Memorial Day", _H, _NEG, (-20, -5), (-25, -10), (-10, -3), 0, 0),
        _event("LIBERATION_DAY", "Liberation Day", _H, _NEG, (-15, -5), (-20, -5), (-10, -2), 0, 0),
        _event("CHUSEOK", "Chuseok", _H, _MIX, (-20, 70), (-30, 60), (-15, 20), 14, 3,
               {"ecommerce": 1.4, "food_beverage": 1.6, "fashion": 1.2, "beauty": 1.3},
               "Harvest festival gift season"),
        _event("NATIONAL_FOUNDATION_DAY", "National Foundation Day", _H, _NEG, (-15, -5), (-20, -5), (-10, -2), 0, 0),
        _event("HANGUL_DAY", "Hangul Day", _H, _NEG, (-15, -5), (-20, -5), (-10, -2), 0, 0),
        _event("CHRISTMAS", "Christmas", _H, _POS, (20, 100), (30, 120), (10, 30), 21, 1,
               {"ecommerce": 1.5, "fashion": 1.4, "beauty": 1.3, "food_beverage": 1.2},
               "Peak of the year-end shopping season"),
    ]
}

COMMERCIAL_EVENTS: Dict[str, MarketEvent] = {
    e.event_id: e
    for e in [
        _event("VALENTINES_DAY", "Valentine's Day", _C, _POS, (15, 50), (20, 60), (5, 20), 7, 0,
               {"beauty": 1.4, "fashion": 1.3, "food_beverage": 1.5}),
        _event("WHITE_DAY", "White Day", _C, _POS, (15, 45), (20, 55), (5, 18), 7, 0,
               {"beauty": 1.3, "fashion": 1.2, "food_beverage": 1.4}),
        _event("TEACHERS_DAY", "Teachers' Day", _C, _POS, (5, 25), (10, 35), (3, 12), 5, 0,
               {"education": 1.5, "beauty": 1.2, "food_beverage": 1.2}),
        _event("PEPERO_DAY", "Pepero Day", _C, _POS, (10, 35), (15, 45), (5, 15), 5, 0,
               {"food_beverage": 1.8, "ecommerce": 1.2}),
        _event("SINGLES_DAY", "Singles' Day (11.11)", _C, _POS, (20, 70), (30, 100), (10, 30), 3, 1,
               {"ecommerce": 1.5, "fashion": 1.3, "beauty": 1.4}),
        _event("BLACK_FRIDAY", "Black Friday", _C, _POS, (30, 100), (40, 150), (15, 40), 3, 3,
               {"ecommerce": 1.6, "fashion": 1.5, "beauty": 1.3}),
        _event("CYBER_MONDAY", "Cyber Monday", _C, _POS, (25, 80), (35, 120), (12, 35), 0, 1,
               {"ecommerce": 1.7, "saas": 1.3}),
    ]
}

SEASONAL_EVENTS: Dict[str, MarketEvent] = {
    e.event_id: e
    for e in [
        _event("YEAR_END_SHOPPING", "Year-end Shopping Season", _S, _POS, (20, 80), (25, 100), (10, 25), 0, 0,
               {"ecommerce": 1.4, "fashion": 1.3, "beauty": 1.2}),
        _event("SUMMER_VACATION", "Summer Vacation Season", _S, _MIX, (-20, 40), (-25, 50), (-10, 15), 0, 0,
               {"fashion": 1.3, "beauty": 1.2, "food_beverage": 1.1}),
        _event("BACK_TO_SCHOOL", "Back to School Season", _S, _POS, (10, 40), (15, 50), (5, 15), 0, 0,
               {"education": 1.6, "fashion": 1.3, "ecommerce": 1.2}),
        _event("YEAR_END_TAX", "Year-end Tax Season", _S, _POS, (5, 30), (10, 40), (3, 12), 0, 0,
               {"saas": 1.4, "education": 1.3}),
    ]
}

# Months during which each seasonal window is in effect.
SEASONAL_MONTHS: Dict[str, tuple] = {
    "YEAR_END_SHOPPING": (12,),
    "SUMMER_VACATION": (7, 8),
    "BACK_TO_SCHOOL": (2, 3),
    "YEAR_END_TAX": (1,),
}

EVENT_CATALOG: Dict[str, MarketEvent] = {**PUBLIC_HOLIDAYS, **COMMERCIAL_EVENTS, **SEASONAL_EVENTS}
