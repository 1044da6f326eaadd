"""Calendar rules shared by pricing factors and historical lookups."""

from __future__ import annotations

from datetime import date

from pricing_engine.domain.models import DateRange


SEASONALITY_BY_MONTH = {
    1: 0.8,
    2: 0.8,
    3: 0.9,
    4: 1.0,
    5: 1.1,
    6: 1.3,
    7: 1.4,
    8: 1.4,
    9: 1.2,
    10: 1.0,
    11: 0.9,
    12: 1.1,
}

# date.weekday(): Friday=4, Saturday=5
WEEKEND_NIGHTS = frozenset({4, 5})


def seasonality_factor(check_in: date) -> float:
    return SEASONALITY_BY_MONTH.get(check_in.month, 1.0)


def season_label(check_in: date) -> str:
    factor = seasonality_factor(check_in)
    if factor >= 1.3:
        return "peak"
    if factor > 1.0:
        return "high"
    if factor == 1.0:
        return "normal"
    return "low"


def period_profile(date_range: DateRange) -> str:
    """Group a stay as '<season>:<weekpart>' for historical lookups."""
    weekend_nights = sum(
        1 for night in date_range.iter_nights() if night.weekday() in WEEKEND_NIGHTS
    )
    weekpart = "weekend" if weekend_nights * 2 >= date_range.nights else "weekday"
    return f"{season_label(date_range.check_in)}:{weekpart}"
