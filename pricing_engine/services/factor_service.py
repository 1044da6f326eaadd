"""Pricing signal extraction and demand classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional

from pricing_engine.domain.constraints import DataUnavailableError
from pricing_engine.domain.models import DateRange, DemandLevel, PricingFactors
from pricing_engine.domain.seasons import WEEKEND_NIGHTS, seasonality_factor
from pricing_engine.services.collaborators import DemandClient, OccupancyClient, call_collaborator
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)

WEEKEND_NIGHT_WEIGHT = 1.2
SUNDAY_NIGHT_WEIGHT = 1.1
WEEKDAY_NIGHT_WEIGHT = 0.9

# (max days until check-in, factor), evaluated in order
BOOKING_WINDOW_STEPS = (
    (1, 1.3),
    (7, 1.1),
    (30, 1.0),
    (90, 0.9),
)
BOOKING_WINDOW_FAR_FACTOR = 0.8

EVENT_TOLERANCE_DAYS = 2


@dataclass(frozen=True)
class AnnualEvent:
    name: str
    month: int
    day: int
    factor: float


LOCAL_EVENTS = (
    AnnualEvent(name="New Year's Eve", month=12, day=31, factor=1.5),
    AnnualEvent(name="Independence Day", month=7, day=5, factor=1.3),
    AnnualEvent(name="Revolution Day", month=11, day=1, factor=1.2),
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def classify_demand(occupancy_rate: float) -> DemandLevel:
    if occupancy_rate >= 0.9:
        return DemandLevel.VERY_HIGH
    if occupancy_rate >= 0.8:
        return DemandLevel.HIGH
    if occupancy_rate >= 0.6:
        return DemandLevel.MEDIUM
    if occupancy_rate >= 0.4:
        return DemandLevel.LOW
    return DemandLevel.VERY_LOW


def day_of_week_factor(date_range: DateRange) -> float:
    """Mean nightly weight; weekday-heavy stays fall below 1.0."""
    weights = []
    for night in date_range.iter_nights():
        weekday = night.weekday()
        if weekday in WEEKEND_NIGHTS:
            weights.append(WEEKEND_NIGHT_WEIGHT)
        elif weekday == 6:
            weights.append(SUNDAY_NIGHT_WEIGHT)
        else:
            weights.append(WEEKDAY_NIGHT_WEIGHT)
    return sum(weights) / len(weights)


def booking_window_factor(check_in: date, today: date) -> float:
    days_in_advance = (check_in - today).days
    for max_days, factor in BOOKING_WINDOW_STEPS:
        if days_in_advance <= max_days:
            return factor
    return BOOKING_WINDOW_FAR_FACTOR


def _days_to_event(check_in: date, event: AnnualEvent) -> int:
    distances = []
    for year in (check_in.year - 1, check_in.year, check_in.year + 1):
        try:
            occurrence = date(year, event.month, event.day)
        except ValueError:
            continue
        distances.append(abs((occurrence - check_in).days))
    return min(distances)


def local_events_factor(check_in: date) -> float:
    for event in LOCAL_EVENTS:
        if _days_to_event(check_in, event) <= EVENT_TOLERANCE_DAYS:
            return event.factor
    return 1.0


class FactorAnalyzer:
    """Collects the six pricing signals for one room and stay."""

    def __init__(
        self,
        occupancy_client: OccupancyClient,
        demand_client: DemandClient,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._occupancy_client = occupancy_client
        self._demand_client = demand_client
        self._today = today

    async def _occupancy_rate(self, date_range: DateRange) -> float:
        default = self._settings.pricing_default_occupancy_rate
        result = await call_collaborator(
            "occupancy_rate",
            lambda: self._occupancy_client.get_occupancy_rate(date_range),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            return default
        rate = float(result.value_or(default))
        if not 0.0 <= rate <= 1.0:
            logger.warning("Occupancy rate out of range | value=%s | fallback=%s", rate, default)
            return default
        return rate

    async def _room_type_demand(self, room_id: int, date_range: DateRange) -> float:
        default = self._settings.pricing_default_room_demand
        result = await call_collaborator(
            "room_demand",
            lambda: self._demand_client.get_room_demand(room_id, date_range),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            return default
        demand = float(result.value_or(default))
        if demand < 0.0:
            logger.warning("Room demand negative | room_id=%s | value=%s", room_id, demand)
            return default
        return demand

    async def analyze(self, room_id: int, date_range: DateRange) -> PricingFactors:
        if not date_range.is_valid():
            raise DataUnavailableError("check_out must be after check_in")

        factors = PricingFactors(
            occupancy_rate=await self._occupancy_rate(date_range),
            seasonality=seasonality_factor(date_range.check_in),
            day_of_week=day_of_week_factor(date_range),
            booking_window=booking_window_factor(date_range.check_in, self._today()),
            local_events=local_events_factor(date_range.check_in),
            room_type_demand=await self._room_type_demand(room_id, date_range),
        )
        logger.info(
            "Pricing factors analyzed | room_id=%s | check_in=%s | nights=%s | factors=%s",
            room_id,
            date_range.check_in.isoformat(),
            date_range.nights,
            factors.to_dict(),
        )
        return factors
