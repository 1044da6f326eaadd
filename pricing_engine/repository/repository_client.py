"""Async collaborator adapter over the SQLite repository."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from pricing_engine.domain.models import (
    AvailabilityForecast,
    Conflict,
    DateRange,
    HistoricalBasis,
    PricePoint,
    ReservationRecord,
    RoomFilters,
    RoomRecord,
)
from pricing_engine.repository.data_repository import DataRepository


class RepositoryClient:
    """Implements every engine collaborator protocol; blocking calls run off the event loop."""

    def __init__(self, repository: DataRepository, forecaster=None) -> None:
        self._repository = repository
        self._forecaster = forecaster

    async def get_occupancy_rate(self, date_range: DateRange) -> float:
        return await asyncio.to_thread(self._repository.get_occupancy_rate, date_range)

    async def get_room_demand(self, room_id: int, date_range: DateRange) -> float:
        return await asyncio.to_thread(self._repository.get_room_demand, room_id, date_range)

    async def get_reservation_conflicts(
        self,
        date_range: DateRange,
        *,
        room_id: Optional[int] = None,
        room_type: Optional[str] = None,
        exclude_reservation_id: Optional[int] = None,
    ) -> Sequence[Conflict]:
        return await asyncio.to_thread(
            self._repository.get_reservation_conflicts,
            date_range,
            room_id,
            room_type,
            exclude_reservation_id,
        )

    async def get_available_rooms_matching(
        self,
        date_range: DateRange,
        filters: RoomFilters,
    ) -> Sequence[RoomRecord]:
        return await asyncio.to_thread(
            self._repository.get_available_rooms_matching,
            date_range,
            filters.room_type,
            filters.capacity,
        )

    async def list_rooms(self, room_ids: Optional[Sequence[int]] = None) -> Sequence[RoomRecord]:
        return await asyncio.to_thread(self._repository.list_rooms, room_ids)

    async def get_reservations_in_range(
        self,
        date_range: DateRange,
        room_ids: Optional[Sequence[int]] = None,
    ) -> Sequence[ReservationRecord]:
        return await asyncio.to_thread(
            self._repository.get_reservations_in_range,
            date_range,
            room_ids,
        )

    async def get_historical_overbooking_outcomes(
        self,
        room_type: str,
        period_profile: str,
    ) -> HistoricalBasis:
        return await asyncio.to_thread(
            self._repository.get_overbooking_outcomes,
            room_type,
            period_profile,
        )

    async def get_price_history(self, room_id: int, days: int) -> Sequence[PricePoint]:
        return await asyncio.to_thread(self._repository.get_price_history, room_id, days)

    async def get_demand_forecast(
        self,
        date_range: DateRange,
        room_type: Optional[str],
    ) -> AvailabilityForecast:
        if self._forecaster is None:
            raise RuntimeError("No demand forecaster configured")
        return await asyncio.to_thread(self._forecaster.forecast, date_range, room_type)
