"""Engine facade consumed by booking workflows and reporting layers."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Optional, Sequence

from pricing_engine.domain.constraints import InvalidInputError
from pricing_engine.domain.models import (
    AvailabilityForecast,
    AvailabilityQuery,
    AvailabilityResult,
    AvailabilityStats,
    DateRange,
    OccupancyCalendar,
    OverbookingAssessment,
    PricePoint,
    PricingResult,
    RoomFilters,
    RoomRecord,
)
from pricing_engine.services.availability_service import (
    AvailabilityPredictor,
    AvailabilityResolver,
    OccupancyCalendarBuilder,
)
from pricing_engine.services.cache_service import ResultCache
from pricing_engine.services.collaborators import (
    DemandClient,
    ForecastClient,
    OccupancyClient,
    OverbookingHistoryClient,
    PriceHistoryClient,
    ReservationClient,
)
from pricing_engine.services.factor_service import FactorAnalyzer, classify_demand, utc_today
from pricing_engine.services.overbooking_service import OverbookingAnalyzer
from pricing_engine.services.pricing_service import DynamicPricingService
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


class PricingAvailabilityEngine:
    """Owns the shared cache and the components; collaborators are injected."""

    def __init__(
        self,
        *,
        occupancy_client: OccupancyClient,
        demand_client: DemandClient,
        reservation_client: ReservationClient,
        overbooking_client: OverbookingHistoryClient,
        forecast_client: ForecastClient,
        price_history_client: PriceHistoryClient,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache or ResultCache(settings=self._settings)
        self._today = today
        self._pricing = DynamicPricingService(
            factor_analyzer=FactorAnalyzer(
                occupancy_client=occupancy_client,
                demand_client=demand_client,
                settings=self._settings,
                today=today,
            ),
            reservation_client=reservation_client,
            price_history_client=price_history_client,
            settings=self._settings,
        )
        self._resolver = AvailabilityResolver(
            reservation_client=reservation_client,
            cache=self._cache,
            settings=self._settings,
            today=today,
        )
        self._calendar = OccupancyCalendarBuilder(
            reservation_client=reservation_client,
            cache=self._cache,
            settings=self._settings,
        )
        self._overbooking = OverbookingAnalyzer(
            history_client=overbooking_client,
            cache=self._cache,
            settings=self._settings,
            today=today,
        )
        self._predictor = AvailabilityPredictor(
            forecast_client=forecast_client,
            cache=self._cache,
            settings=self._settings,
            today=today,
        )

    @classmethod
    def from_client(cls, client, **kwargs) -> "PricingAvailabilityEngine":
        """Build an engine whose collaborators are all served by one client object."""
        return cls(
            occupancy_client=client,
            demand_client=client,
            reservation_client=client,
            overbooking_client=client,
            forecast_client=client,
            price_history_client=client,
            **kwargs,
        )

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def calculate_dynamic_price(
        self,
        room_id: int,
        date_range: DateRange,
        base_price: float,
    ) -> PricingResult:
        return await self._pricing.calculate_dynamic_price(room_id, date_range, base_price)

    async def get_pricing_recommendations(
        self,
        date_range: DateRange,
        room_types: Optional[Sequence[str]] = None,
    ) -> list[tuple[RoomRecord, PricingResult]]:
        return await self._pricing.get_pricing_recommendations(date_range, room_types)

    async def get_pricing_trends(self, room_id: int, days: int = 30) -> list[PricePoint]:
        return await self._pricing.get_pricing_trends(room_id, days)

    async def check_availability(self, query: AvailabilityQuery) -> AvailabilityResult:
        return await self._resolver.check_availability(query)

    async def get_available_rooms(
        self,
        date_range: DateRange,
        filters: Optional[RoomFilters] = None,
    ) -> list[RoomRecord]:
        return await self._resolver.list_available_rooms(date_range, filters)

    async def get_occupancy_calendar(
        self,
        date_range: DateRange,
        room_ids: Optional[Sequence[int]] = None,
    ) -> OccupancyCalendar:
        return await self._calendar.build_calendar(date_range, room_ids)

    async def check_overbooking_opportunity(
        self,
        date_range: DateRange,
        room_type: str,
    ) -> OverbookingAssessment:
        return await self._overbooking.assess(date_range, room_type)

    async def predict_availability(
        self,
        date_range: DateRange,
        room_type: Optional[str] = None,
    ) -> AvailabilityForecast:
        return await self._predictor.predict(date_range, room_type)

    async def get_availability_stats(self, period_days: int = 30) -> AvailabilityStats:
        """Trailing-period occupancy summary ending yesterday."""
        if period_days <= 0:
            raise InvalidInputError("period_days must be a positive integer")
        today = self._today()
        period = DateRange(check_in=today - timedelta(days=period_days), check_out=today)
        calendar = await self._calendar.build_calendar(period)
        total_room_nights = sum(len(rooms) for rooms in calendar.days.values())
        booked_room_nights = sum(
            1
            for rooms in calendar.days.values()
            for state in rooms.values()
            if state.status == "occupied"
        )
        return AvailabilityStats(
            period_days=period_days,
            occupancy_rate=calendar.occupancy_rate,
            total_room_nights=total_room_nights,
            booked_room_nights=booked_room_nights,
            demand_level=classify_demand(calendar.occupancy_rate),
        )

    def clear_cache(self) -> None:
        self._cache.clear_all()
