"""Collaborator interfaces consumed by the engine and the bounded call helper."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Protocol, Sequence, TypeVar

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
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class ServiceUnavailableError(Exception):
    """Raised when a safety-critical collaborator call fails or times out."""


class OccupancyClient(Protocol):
    async def get_occupancy_rate(self, date_range: DateRange) -> float: ...


class DemandClient(Protocol):
    async def get_room_demand(self, room_id: int, date_range: DateRange) -> float: ...


class ReservationClient(Protocol):
    async def get_reservation_conflicts(
        self,
        date_range: DateRange,
        *,
        room_id: Optional[int] = None,
        room_type: Optional[str] = None,
        exclude_reservation_id: Optional[int] = None,
    ) -> Sequence[Conflict]: ...

    async def get_available_rooms_matching(
        self,
        date_range: DateRange,
        filters: RoomFilters,
    ) -> Sequence[RoomRecord]: ...

    async def list_rooms(self, room_ids: Optional[Sequence[int]] = None) -> Sequence[RoomRecord]: ...

    async def get_reservations_in_range(
        self,
        date_range: DateRange,
        room_ids: Optional[Sequence[int]] = None,
    ) -> Sequence[ReservationRecord]: ...


class OverbookingHistoryClient(Protocol):
    async def get_historical_overbooking_outcomes(
        self,
        room_type: str,
        period_profile: str,
    ) -> HistoricalBasis: ...


class ForecastClient(Protocol):
    async def get_demand_forecast(
        self,
        date_range: DateRange,
        room_type: Optional[str],
    ) -> AvailabilityForecast: ...


class PriceHistoryClient(Protocol):
    async def get_price_history(self, room_id: int, days: int) -> Sequence[PricePoint]: ...


@dataclass(frozen=True)
class CollaboratorResult(Generic[T]):
    """Outcome of one collaborator call; exactly one of value/error is meaningful."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "CollaboratorResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "CollaboratorResult[T]":
        return cls(ok=False, error=error)

    def value_or(self, default: T) -> T:
        if self.ok and self.value is not None:
            return self.value
        return default


async def call_collaborator(
    name: str,
    factory: Callable[[], Awaitable[T]],
    timeout_seconds: float,
) -> CollaboratorResult[T]:
    """Await one collaborator call under a timeout and capture its outcome."""
    try:
        value = await asyncio.wait_for(factory(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("Collaborator timed out | name=%s | timeout=%.2fs", name, timeout_seconds)
        return CollaboratorResult.failure(f"{name} timed out after {timeout_seconds:.2f}s")
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Collaborator failed | name=%s | error=%s", name, exc)
        return CollaboratorResult.failure(f"{name} failed: {exc}")
    return CollaboratorResult.success(value)
