"""Availability resolution, occupancy calendars and availability forecasts."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from types import MappingProxyType
from typing import Callable, Optional, Sequence

from pricing_engine.domain.constraints import (
    InvalidInputError,
    RoomNotFoundError,
    validate_availability_query,
    validate_date_range,
    validate_forward_range,
)
from pricing_engine.domain.models import (
    OCCUPYING_STATUSES,
    UNBOOKABLE_ROOM_STATUSES,
    AvailabilityForecast,
    AvailabilityQuery,
    AvailabilityResult,
    Conflict,
    DateRange,
    OccupancyCalendar,
    RoomDayState,
    RoomFilters,
    RoomRecord,
)
from pricing_engine.services.cache_service import ResultCache, build_cache_key
from pricing_engine.services.collaborators import (
    ForecastClient,
    ReservationClient,
    ServiceUnavailableError,
    call_collaborator,
)
from pricing_engine.services.factor_service import utc_today
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


def _room_matches(room: RoomRecord, filters: RoomFilters) -> bool:
    if filters.room_type is not None and room.room_type.lower() != filters.room_type.lower():
        return False
    if filters.capacity is not None and room.capacity < filters.capacity:
        return False
    return True


def _is_bookable(room: RoomRecord) -> bool:
    return room.status not in UNBOOKABLE_ROOM_STATUSES


def _order_conflicts(conflicts: Sequence[Conflict]) -> list[Conflict]:
    return sorted(conflicts, key=lambda item: (item.check_in, item.room_id, item.reservation_id))


class AvailabilityResolver:
    """Answers booking-safety availability questions; never guesses on failure."""

    def __init__(
        self,
        reservation_client: ReservationClient,
        cache: ResultCache,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._reservation_client = reservation_client
        self._cache = cache
        self._today = today

    async def _fetch_conflicts(
        self,
        date_range: DateRange,
        *,
        room_id: Optional[int],
        room_type: Optional[str],
        exclude_reservation_id: Optional[int],
    ) -> list[Conflict]:
        result = await call_collaborator(
            "reservation_conflicts",
            lambda: self._reservation_client.get_reservation_conflicts(
                date_range,
                room_id=room_id,
                room_type=room_type,
                exclude_reservation_id=exclude_reservation_id,
            ),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            raise ServiceUnavailableError(result.error or "reservation conflicts unavailable")
        conflicts = [
            conflict
            for conflict in result.value_or([])
            if exclude_reservation_id is None or conflict.reservation_id != exclude_reservation_id
        ]
        return _order_conflicts(conflicts)

    async def _fetch_rooms(self, room_ids: Optional[Sequence[int]]) -> list[RoomRecord]:
        result = await call_collaborator(
            "list_rooms",
            lambda: self._reservation_client.list_rooms(room_ids),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            raise ServiceUnavailableError(result.error or "room listing unavailable")
        return list(result.value_or([]))

    async def _check_room(self, query: AvailabilityQuery) -> AvailabilityResult:
        room = next(
            (room for room in await self._fetch_rooms([query.room_id]) if room.room_id == query.room_id),
            None,
        )
        if room is None:
            raise RoomNotFoundError(f"room_id {query.room_id} not found")
        if not _is_bookable(room):
            return AvailabilityResult(
                available=False,
                conflicts=(),
                message=f"Room {query.room_id} is not bookable (status={room.status})",
            )

        conflicts = await self._fetch_conflicts(
            query.date_range,
            room_id=query.room_id,
            room_type=None,
            exclude_reservation_id=query.exclude_reservation_id,
        )
        if conflicts:
            return AvailabilityResult(
                available=False,
                conflicts=tuple(conflicts),
                message=f"Room {query.room_id} has {len(conflicts)} conflicting reservation(s)",
            )
        return AvailabilityResult(
            available=True,
            conflicts=(),
            message=f"Room {query.room_id} is available",
        )

    async def _check_room_type(self, query: AvailabilityQuery) -> AvailabilityResult:
        filters = RoomFilters(room_type=query.room_type, capacity=query.capacity)
        candidates = [
            room
            for room in await self._fetch_rooms(None)
            if _room_matches(room, filters) and _is_bookable(room)
        ]
        if not candidates:
            return AvailabilityResult(
                available=False,
                conflicts=(),
                message=f"No bookable {query.room_type} rooms match the requested capacity",
            )

        conflicts = await self._fetch_conflicts(
            query.date_range,
            room_id=None,
            room_type=query.room_type,
            exclude_reservation_id=query.exclude_reservation_id,
        )
        candidate_ids = {room.room_id for room in candidates}
        conflicts = [conflict for conflict in conflicts if conflict.room_id in candidate_ids]
        blocked_ids = {conflict.room_id for conflict in conflicts}
        free_count = len(candidate_ids - blocked_ids)
        if free_count:
            return AvailabilityResult(
                available=True,
                conflicts=(),
                message=f"{free_count} {query.room_type} room(s) available",
            )
        return AvailabilityResult(
            available=False,
            conflicts=tuple(conflicts),
            message=f"All {len(candidate_ids)} {query.room_type} room(s) are booked",
        )

    async def check_availability(self, query: AvailabilityQuery) -> AvailabilityResult:
        validate_availability_query(query)
        validate_forward_range(query.date_range, self._today())

        cache_key = build_cache_key(
            "availability",
            room_id=query.room_id,
            room_type=query.room_type,
            capacity=query.capacity,
            check_in=query.date_range.check_in.isoformat(),
            check_out=query.date_range.check_out.isoformat(),
            exclude_reservation_id=query.exclude_reservation_id,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        if query.room_id is not None:
            result = await self._check_room(query)
        else:
            result = await self._check_room_type(query)

        self._cache.set(cache_key, result)
        logger.info(
            "Availability checked | room_id=%s | room_type=%s | available=%s | conflicts=%s",
            query.room_id,
            query.room_type,
            result.available,
            len(result.conflicts),
        )
        return result

    async def list_available_rooms(
        self,
        date_range: DateRange,
        filters: Optional[RoomFilters] = None,
    ) -> list[RoomRecord]:
        filters = filters or RoomFilters()
        validate_forward_range(date_range, self._today())

        cache_key = build_cache_key(
            "available_rooms",
            check_in=date_range.check_in.isoformat(),
            check_out=date_range.check_out.isoformat(),
            room_type=filters.room_type,
            capacity=filters.capacity,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return list(cached)

        result = await call_collaborator(
            "available_rooms",
            lambda: self._reservation_client.get_available_rooms_matching(date_range, filters),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok:
            raise ServiceUnavailableError(result.error or "available rooms unavailable")

        rooms = sorted(
            (
                room
                for room in result.value_or([])
                if _room_matches(room, filters) and _is_bookable(room)
            ),
            key=lambda room: (room.room_type, room.number, room.room_id),
        )
        self._cache.set(cache_key, tuple(rooms))
        return rooms


class OccupancyCalendarBuilder:
    """Display-oriented per-night occupancy view; degrades to an empty calendar."""

    def __init__(
        self,
        reservation_client: ReservationClient,
        cache: ResultCache,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._reservation_client = reservation_client
        self._cache = cache

    async def build_calendar(
        self,
        date_range: DateRange,
        room_ids: Optional[Sequence[int]] = None,
    ) -> OccupancyCalendar:
        validate_date_range(date_range)
        max_nights = self._settings.calendar_max_nights
        if date_range.nights > max_nights:
            raise InvalidInputError(f"calendar span must not exceed {max_nights} nights")
        cache_key = build_cache_key(
            "occupancy_calendar",
            check_in=date_range.check_in.isoformat(),
            check_out=date_range.check_out.isoformat(),
            room_ids=list(room_ids) if room_ids else "all",
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        timeout = self._settings.collaborator_timeout_seconds
        rooms_result = await call_collaborator(
            "list_rooms",
            lambda: self._reservation_client.list_rooms(room_ids),
            timeout,
        )
        if not rooms_result.ok:
            return OccupancyCalendar(
                days=MappingProxyType({}),
                occupancy_rate=0.0,
                message=rooms_result.error or "",
            )
        reservations_result = await call_collaborator(
            "reservations_in_range",
            lambda: self._reservation_client.get_reservations_in_range(date_range, room_ids),
            timeout,
        )
        if not reservations_result.ok:
            return OccupancyCalendar(
                days=MappingProxyType({}),
                occupancy_rate=0.0,
                message=reservations_result.error or "",
            )

        room_list = list(rooms_result.value_or([]))
        days: dict[date, dict[int, RoomDayState]] = {
            night: {room.room_id: RoomDayState(status="available") for room in room_list}
            for night in date_range.iter_nights()
        }
        occupied_nights = 0
        for reservation in reservations_result.value_or([]):
            if reservation.status not in OCCUPYING_STATUSES:
                continue
            for night in reservation.stay.iter_nights():
                bucket = days.get(night)
                if bucket is None or reservation.room_id not in bucket:
                    continue
                if bucket[reservation.room_id].status == "available":
                    occupied_nights += 1
                bucket[reservation.room_id] = RoomDayState(
                    status="occupied",
                    reservation_id=reservation.reservation_id,
                )

        total_room_nights = len(room_list) * date_range.nights
        occupancy_rate = round(occupied_nights / total_room_nights, 4) if total_room_nights else 0.0
        calendar = OccupancyCalendar(
            days=MappingProxyType(
                {night: MappingProxyType(rooms) for night, rooms in days.items()}
            ),
            occupancy_rate=occupancy_rate,
        )
        self._cache.set(cache_key, calendar)
        logger.info(
            "Occupancy calendar built | nights=%s | rooms=%s | occupancy_rate=%.4f",
            date_range.nights,
            len(room_list),
            occupancy_rate,
        )
        return calendar


class AvailabilityPredictor:
    """Advisory forecasts; failures yield an empty zero-confidence forecast."""

    def __init__(
        self,
        forecast_client: ForecastClient,
        cache: ResultCache,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._forecast_client = forecast_client
        self._cache = cache
        self._today = today

    async def predict(
        self,
        date_range: DateRange,
        room_type: Optional[str] = None,
    ) -> AvailabilityForecast:
        validate_forward_range(date_range, self._today())
        cache_key = build_cache_key(
            "availability_forecast",
            check_in=date_range.check_in.isoformat(),
            check_out=date_range.check_out.isoformat(),
            room_type=room_type,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result = await call_collaborator(
            "demand_forecast",
            lambda: self._forecast_client.get_demand_forecast(date_range, room_type),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok or result.value is None:
            return AvailabilityForecast(predictions=(), confidence=0.0, message=result.error or "")

        forecast = replace(result.value, predictions=tuple(result.value.predictions))
        self._cache.set(cache_key, forecast)
        return forecast
