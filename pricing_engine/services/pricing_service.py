"""Bounded multiplicative price adjustment and the pricing workflow built on it."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from pricing_engine.domain.constraints import (
    InvalidInputError,
    PricingConfig,
    validate_base_price,
    validate_date_range,
    validate_pricing_config,
    validate_pricing_factors,
)
from pricing_engine.domain.models import (
    DateRange,
    DemandLevel,
    MarketConditions,
    PricePoint,
    PricingFactors,
    PricingResult,
    RoomRecord,
)
from pricing_engine.services.collaborators import (
    PriceHistoryClient,
    ReservationClient,
    call_collaborator,
)
from pricing_engine.services.factor_service import FactorAnalyzer, classify_demand
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


# (minimum occupancy, bonus), evaluated in order
OCCUPANCY_TIERS = (
    (0.9, 1.3),
    (0.8, 1.2),
    (0.6, 1.1),
)
LOW_OCCUPANCY_CEILING = 0.3
LOW_OCCUPANCY_DISCOUNT = 0.8

_MARKET_DEMAND_BY_LEVEL = {
    DemandLevel.VERY_LOW: "low",
    DemandLevel.LOW: "low",
    DemandLevel.MEDIUM: "medium",
    DemandLevel.HIGH: "high",
    DemandLevel.VERY_HIGH: "high",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def occupancy_tier_bonus(occupancy_rate: float) -> float:
    for minimum, bonus in OCCUPANCY_TIERS:
        if occupancy_rate >= minimum:
            return bonus
    if occupancy_rate <= LOW_OCCUPANCY_CEILING:
        return LOW_OCCUPANCY_DISCOUNT
    return 1.0


def market_conditions_for(demand_level: DemandLevel) -> MarketConditions:
    return MarketConditions(
        competitor_pricing="average",
        market_demand=_MARKET_DEMAND_BY_LEVEL[demand_level],
        economic_factors="stable",
    )


class PriceAdjuster:
    """Folds pricing factors into one clamped multiplier."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._config = PricingConfig(
            min_multiplier=self._settings.pricing_min_multiplier,
            max_multiplier=self._settings.pricing_max_multiplier,
            default_occupancy_rate=self._settings.pricing_default_occupancy_rate,
            default_room_demand=self._settings.pricing_default_room_demand,
        )
        validate_pricing_config(self._config)

    def adjustment_multiplier(self, factors: PricingFactors) -> float:
        # Occupancy enters as a tier bonus; the rest multiply in continuously.
        multiplier = occupancy_tier_bonus(factors.occupancy_rate)
        for value in (
            factors.seasonality,
            factors.day_of_week,
            factors.booking_window,
            factors.local_events,
            factors.room_type_demand,
        ):
            multiplier *= value
        return max(self._config.min_multiplier, min(self._config.max_multiplier, multiplier))

    def compute_price(
        self,
        base_price: float,
        factors: PricingFactors,
        demand_level: DemandLevel,
    ) -> PricingResult:
        validate_base_price(base_price)
        validate_pricing_factors(factors)

        multiplier = self.adjustment_multiplier(factors)
        dynamic_price = round_half_up(base_price * multiplier)
        savings = base_price - dynamic_price
        return PricingResult(
            base_price=base_price,
            dynamic_price=dynamic_price,
            adjustment_multiplier=multiplier,
            factors=factors,
            market_conditions=market_conditions_for(demand_level),
            demand_level=demand_level,
            savings=savings,
            savings_percentage=round_half_up(savings / base_price * 100),
        )


class DynamicPricingService:
    """Pricing operations exposed to booking and reporting callers."""

    def __init__(
        self,
        factor_analyzer: FactorAnalyzer,
        reservation_client: ReservationClient,
        price_history_client: PriceHistoryClient,
        price_adjuster: Optional[PriceAdjuster] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._factor_analyzer = factor_analyzer
        self._reservation_client = reservation_client
        self._price_history_client = price_history_client
        self._price_adjuster = price_adjuster or PriceAdjuster(settings=self._settings)

    async def calculate_dynamic_price(
        self,
        room_id: int,
        date_range: DateRange,
        base_price: float,
    ) -> PricingResult:
        validate_base_price(base_price)
        validate_date_range(date_range)

        factors = await self._factor_analyzer.analyze(room_id, date_range)
        demand_level = classify_demand(factors.occupancy_rate)
        result = self._price_adjuster.compute_price(base_price, factors, demand_level)
        logger.info(
            (
                "Dynamic price calculated | room_id=%s | base_price=%s | "
                "dynamic_price=%s | multiplier=%.4f | demand_level=%s"
            ),
            room_id,
            base_price,
            result.dynamic_price,
            result.adjustment_multiplier,
            demand_level.value,
        )
        return result

    async def get_pricing_recommendations(
        self,
        date_range: DateRange,
        room_types: Optional[Sequence[str]] = None,
    ) -> list[tuple[RoomRecord, PricingResult]]:
        """Price every room of the requested types from its own base price."""
        validate_date_range(date_range)
        rooms_result = await call_collaborator(
            "list_rooms",
            lambda: self._reservation_client.list_rooms(None),
            self._settings.collaborator_timeout_seconds,
        )
        if not rooms_result.ok:
            return []

        wanted = {room_type.lower() for room_type in room_types or []}
        recommendations: list[tuple[RoomRecord, PricingResult]] = []
        for room in rooms_result.value_or([]):
            if wanted and room.room_type.lower() not in wanted:
                continue
            if room.base_price <= 0:
                logger.warning("Skipping room without base price | room_id=%s", room.room_id)
                continue
            pricing = await self.calculate_dynamic_price(room.room_id, date_range, room.base_price)
            recommendations.append((room, pricing))
        return recommendations

    async def get_pricing_trends(self, room_id: int, days: int = 30) -> list[PricePoint]:
        if days <= 0:
            raise InvalidInputError("days must be a positive integer")
        result = await call_collaborator(
            "price_history",
            lambda: self._price_history_client.get_price_history(room_id, days),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            return []
        return sorted(result.value_or([]), key=lambda point: point.date)
