from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from pricing_engine.domain.constraints import InvalidInputError, RoomNotFoundError
from pricing_engine.domain.models import (
    BLOCKING_STATUSES,
    AvailabilityForecast,
    AvailabilityQuery,
    Conflict,
    DateRange,
    DemandLevel,
    ForecastDay,
    ReservationRecord,
    RoomFilters,
    RoomRecord,
)
from pricing_engine.services.availability_service import (
    AvailabilityPredictor,
    AvailabilityResolver,
    OccupancyCalendarBuilder,
)
from pricing_engine.services.cache_service import ResultCache
from pricing_engine.services.collaborators import ServiceUnavailableError
from pricing_engine.utils.config import get_settings


TODAY = date(2026, 7, 1)
STAY = DateRange(check_in=date(2026, 7, 10), check_out=date(2026, 7, 12))

ROOMS = [
    RoomRecord(room_id=1, number="101", room_type="standard", capacity=2, base_price=8000),
    RoomRecord(room_id=2, number="102", room_type="standard", capacity=2, base_price=8000),
    RoomRecord(room_id=3, number="301", room_type="suite", capacity=4, base_price=20000),
]


class FakeReservations:
    """Reservation collaborator that records every call it receives."""

    def __init__(self, rooms=ROOMS, reservations=(), fail=(), honour_exclude=True, forecast=None) -> None:
        self.rooms = list(rooms)
        self.reservations = list(reservations)
        self.fail = set(fail)
        self.honour_exclude = honour_exclude
        self.forecast = forecast
        self.calls: list[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def _room_type(self, room_id: int) -> str:
        return next(room.room_type for room in self.rooms if room.room_id == room_id)

    async def get_reservation_conflicts(
        self,
        date_range,
        *,
        room_id=None,
        room_type=None,
        exclude_reservation_id=None,
    ):
        self._check("conflicts")
        conflicts = []
        for reservation in self.reservations:
            if reservation.status not in BLOCKING_STATUSES or not reservation.stay.overlaps(date_range):
                continue
            if room_id is not None and reservation.room_id != room_id:
                continue
            if room_type is not None and self._room_type(reservation.room_id) != room_type:
                continue
            if self.honour_exclude and reservation.reservation_id == exclude_reservation_id:
                continue
            conflicts.append(
                Conflict(
                    reservation_id=reservation.reservation_id,
                    room_id=reservation.room_id,
                    check_in=reservation.check_in,
                    check_out=reservation.check_out,
                    status=reservation.status,
                )
            )
        return conflicts

    async def get_available_rooms_matching(self, date_range, filters):
        self._check("available_rooms")
        blocked = {
            reservation.room_id
            for reservation in self.reservations
            if reservation.status in BLOCKING_STATUSES and reservation.stay.overlaps(date_range)
        }
        return [room for room in self.rooms if room.room_id not in blocked]

    async def list_rooms(self, room_ids=None):
        self._check("list_rooms")
        return [room for room in self.rooms if not room_ids or room.room_id in room_ids]

    async def get_reservations_in_range(self, date_range, room_ids=None):
        self._check("reservations_in_range")
        return [
            reservation
            for reservation in self.reservations
            if reservation.stay.overlaps(date_range)
            and (not room_ids or reservation.room_id in room_ids)
        ]

    async def get_demand_forecast(self, date_range, room_type):
        self._check("forecast")
        return self.forecast


def _reservation(reservation_id, room_id, check_in, check_out, status="confirmed") -> ReservationRecord:
    return ReservationRecord(
        reservation_id=reservation_id,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        status=status,
    )


def _resolver(client: FakeReservations) -> AvailabilityResolver:
    settings = get_settings()
    return AvailabilityResolver(
        reservation_client=client,
        cache=ResultCache(settings=settings),
        settings=settings,
        today=lambda: TODAY,
    )


# --- AvailabilityResolver ---

def test_overlapping_reservation_blocks_room_until_excluded() -> None:
    client = FakeReservations(reservations=[_reservation(42, 1, date(2026, 7, 11), date(2026, 7, 13))])
    resolver = _resolver(client)

    blocked = asyncio.run(resolver.check_availability(AvailabilityQuery(date_range=STAY, room_id=1)))
    assert blocked.available is False
    assert [conflict.reservation_id for conflict in blocked.conflicts] == [42]

    excluded = asyncio.run(
        resolver.check_availability(
            AvailabilityQuery(date_range=STAY, room_id=1, exclude_reservation_id=42)
        )
    )
    assert excluded.available is True
    assert excluded.conflicts == ()


def test_excluded_reservation_is_filtered_even_if_collaborator_returns_it() -> None:
    client = FakeReservations(
        reservations=[_reservation(42, 1, date(2026, 7, 11), date(2026, 7, 13))],
        honour_exclude=False,
    )

    result = asyncio.run(
        _resolver(client).check_availability(
            AvailabilityQuery(date_range=STAY, room_id=1, exclude_reservation_id=42)
        )
    )

    assert result.available is True
    assert all(conflict.reservation_id != 42 for conflict in result.conflicts)


def test_adjacent_stay_does_not_conflict() -> None:
    client = FakeReservations(reservations=[_reservation(5, 1, date(2026, 7, 12), date(2026, 7, 14))])

    result = asyncio.run(_resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_id=1)))

    assert result.available is True


def test_cancelled_reservation_does_not_conflict() -> None:
    client = FakeReservations(
        reservations=[_reservation(5, 1, date(2026, 7, 10), date(2026, 7, 12), status="cancelled")]
    )

    result = asyncio.run(_resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_id=1)))

    assert result.available is True


def test_room_type_available_while_one_room_is_free() -> None:
    client = FakeReservations(reservations=[_reservation(7, 1, date(2026, 7, 9), date(2026, 7, 11))])

    result = asyncio.run(
        _resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_type="standard"))
    )

    assert result.available is True


def test_room_type_unavailable_when_every_room_is_booked() -> None:
    client = FakeReservations(
        reservations=[
            _reservation(7, 1, date(2026, 7, 9), date(2026, 7, 11)),
            _reservation(8, 2, date(2026, 7, 11), date(2026, 7, 15)),
        ]
    )

    result = asyncio.run(
        _resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_type="standard"))
    )

    assert result.available is False
    assert [conflict.reservation_id for conflict in result.conflicts] == [7, 8]


def test_capacity_filter_leaves_no_candidates() -> None:
    result = asyncio.run(
        _resolver(FakeReservations()).check_availability(
            AvailabilityQuery(date_range=STAY, room_type="standard", capacity=3)
        )
    )

    assert result.available is False
    assert result.conflicts == ()


def test_conflict_lookup_failure_is_surfaced() -> None:
    resolver = _resolver(FakeReservations(fail={"conflicts"}))

    with pytest.raises(ServiceUnavailableError):
        asyncio.run(resolver.check_availability(AvailabilityQuery(date_range=STAY, room_id=1)))


def test_past_check_in_is_rejected() -> None:
    resolver = _resolver(FakeReservations())
    past = DateRange(check_in=date(2026, 6, 28), check_out=date(2026, 7, 2))

    with pytest.raises(InvalidInputError):
        asyncio.run(resolver.check_availability(AvailabilityQuery(date_range=past, room_id=1)))


def test_repeated_query_is_served_from_cache() -> None:
    client = FakeReservations()
    resolver = _resolver(client)
    query = AvailabilityQuery(date_range=STAY, room_id=1)

    first = asyncio.run(resolver.check_availability(query))
    second = asyncio.run(resolver.check_availability(query))

    assert first is second
    assert client.calls.count("conflicts") == 1


def test_list_available_rooms_applies_filters() -> None:
    client = FakeReservations(reservations=[_reservation(7, 1, date(2026, 7, 9), date(2026, 7, 11))])

    rooms = asyncio.run(
        _resolver(client).list_available_rooms(STAY, RoomFilters(room_type="standard", capacity=2))
    )

    assert [room.room_id for room in rooms] == [2]


def test_list_available_rooms_failure_is_surfaced() -> None:
    resolver = _resolver(FakeReservations(fail={"available_rooms"}))

    with pytest.raises(ServiceUnavailableError):
        asyncio.run(resolver.list_available_rooms(STAY))


# --- room existence and status ---

MAINTENANCE_SUITE = RoomRecord(
    room_id=4,
    number="302",
    room_type="suite",
    capacity=4,
    base_price=20000,
    status="maintenance",
)


def test_unknown_room_is_reported_missing() -> None:
    resolver = _resolver(FakeReservations())

    with pytest.raises(RoomNotFoundError):
        asyncio.run(resolver.check_availability(AvailabilityQuery(date_range=STAY, room_id=9999)))


def test_room_under_maintenance_is_not_available() -> None:
    client = FakeReservations(rooms=[*ROOMS, MAINTENANCE_SUITE])

    result = asyncio.run(_resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_id=4)))

    assert result.available is False
    assert result.conflicts == ()
    assert "maintenance" in result.message
    assert "conflicts" not in client.calls


def test_room_type_with_only_unbookable_rooms_is_not_available() -> None:
    out_of_order = RoomRecord(room_id=5, number="501", room_type="penthouse", capacity=6, base_price=50000, status="out_of_order")
    client = FakeReservations(rooms=[*ROOMS, out_of_order])

    result = asyncio.run(
        _resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_type="penthouse"))
    )

    assert result.available is False


def test_room_type_ignores_maintenance_rooms_when_the_rest_are_booked() -> None:
    client = FakeReservations(
        rooms=[*ROOMS, MAINTENANCE_SUITE],
        reservations=[_reservation(9, 3, date(2026, 7, 9), date(2026, 7, 13))],
    )

    result = asyncio.run(
        _resolver(client).check_availability(AvailabilityQuery(date_range=STAY, room_type="suite"))
    )

    assert result.available is False
    assert [conflict.reservation_id for conflict in result.conflicts] == [9]


def test_available_room_listing_drops_unbookable_rooms() -> None:
    client = FakeReservations(rooms=[*ROOMS, MAINTENANCE_SUITE])

    rooms = asyncio.run(_resolver(client).list_available_rooms(STAY, RoomFilters(room_type="suite")))

    assert [room.room_id for room in rooms] == [3]


# --- cached results are immutable ---

def test_cached_availability_result_cannot_be_altered_by_callers() -> None:
    client = FakeReservations(reservations=[_reservation(42, 1, date(2026, 7, 11), date(2026, 7, 13))])
    resolver = _resolver(client)
    query = AvailabilityQuery(date_range=STAY, room_id=1)

    first = asyncio.run(resolver.check_availability(query))
    with pytest.raises(AttributeError):
        first.conflicts.clear()
    second = asyncio.run(resolver.check_availability(query))

    assert second.available is False
    assert [conflict.reservation_id for conflict in second.conflicts] == [42]


def test_cached_calendar_cannot_be_altered_by_callers() -> None:
    builder = _calendar_builder(
        FakeReservations(reservations=[_reservation(7, 1, date(2026, 7, 9), date(2026, 7, 11))])
    )

    first = asyncio.run(builder.build_calendar(STAY))
    with pytest.raises(TypeError):
        first.days[date(2026, 7, 10)] = {}
    with pytest.raises(TypeError):
        first.days[date(2026, 7, 10)][1] = None
    second = asyncio.run(builder.build_calendar(STAY))

    assert second.days[date(2026, 7, 10)][1].status == "occupied"


def test_cached_forecast_cannot_be_altered_by_callers() -> None:
    forecast = AvailabilityForecast(
        predictions=[
            ForecastDay(
                date=date(2026, 7, 10),
                predicted_occupancy=0.7,
                expected_available_rooms=1,
                demand_level=DemandLevel.MEDIUM,
            )
        ],
        confidence=0.6,
    )
    client = FakeReservations(forecast=forecast)
    predictor = _predictor(client)

    first = asyncio.run(predictor.predict(STAY))
    forecast.predictions.clear()
    second = asyncio.run(predictor.predict(STAY))

    assert second is first
    assert len(second.predictions) == 1
    assert client.calls.count("forecast") == 1


# --- OccupancyCalendarBuilder ---

def _calendar_builder(client: FakeReservations, **overrides) -> OccupancyCalendarBuilder:
    settings = replace(get_settings(), **overrides)
    return OccupancyCalendarBuilder(
        reservation_client=client,
        cache=ResultCache(settings=settings),
        settings=settings,
    )


def test_calendar_marks_occupied_nights() -> None:
    client = FakeReservations(
        reservations=[
            _reservation(7, 1, date(2026, 7, 9), date(2026, 7, 11)),
            _reservation(9, 3, date(2026, 7, 10), date(2026, 7, 12), status="cancelled"),
        ]
    )

    calendar = asyncio.run(_calendar_builder(client).build_calendar(STAY))

    assert sorted(calendar.days) == [date(2026, 7, 10), date(2026, 7, 11)]
    assert calendar.days[date(2026, 7, 10)][1].status == "occupied"
    assert calendar.days[date(2026, 7, 10)][1].reservation_id == 7
    assert calendar.days[date(2026, 7, 11)][1].status == "available"
    assert calendar.days[date(2026, 7, 10)][3].status == "available"
    assert calendar.occupancy_rate == pytest.approx(round(1 / 6, 4))


def test_calendar_degrades_to_empty_on_failure() -> None:
    client = FakeReservations(fail={"reservations_in_range"})

    calendar = asyncio.run(_calendar_builder(client).build_calendar(STAY))

    assert len(calendar.days) == 0
    assert calendar.occupancy_rate == 0.0
    assert calendar.message


def test_calendar_limited_to_requested_rooms() -> None:
    calendar = asyncio.run(_calendar_builder(FakeReservations()).build_calendar(STAY, [3]))

    assert all(list(rooms) == [3] for rooms in calendar.days.values())


def test_calendar_span_beyond_limit_is_rejected() -> None:
    client = FakeReservations()
    builder = _calendar_builder(client, calendar_max_nights=7)
    week = DateRange(check_in=date(2026, 7, 1), check_out=date(2026, 7, 8))

    with pytest.raises(InvalidInputError):
        asyncio.run(builder.build_calendar(DateRange(check_in=date(2026, 7, 1), check_out=date(2026, 7, 9))))
    assert client.calls == []
    assert len(asyncio.run(builder.build_calendar(week)).days) == 7


# --- AvailabilityPredictor ---

def _predictor(client: FakeReservations, **overrides) -> AvailabilityPredictor:
    settings = replace(get_settings(), **overrides)
    return AvailabilityPredictor(
        forecast_client=client,
        cache=ResultCache(settings=settings),
        settings=settings,
        today=lambda: TODAY,
    )


def test_predictor_returns_collaborator_forecast() -> None:
    forecast = AvailabilityForecast(
        predictions=[
            ForecastDay(
                date=date(2026, 7, 10),
                predicted_occupancy=0.7,
                expected_available_rooms=1,
                demand_level=DemandLevel.MEDIUM,
            )
        ],
        confidence=0.6,
    )

    result = asyncio.run(_predictor(FakeReservations(forecast=forecast)).predict(STAY, "standard"))

    assert isinstance(result.predictions, tuple)
    assert list(result.predictions) == forecast.predictions
    assert result.confidence == 0.6


def test_predictor_failure_yields_empty_zero_confidence_forecast() -> None:
    result = asyncio.run(_predictor(FakeReservations(fail={"forecast"})).predict(STAY))

    assert result.predictions == ()
    assert result.confidence == 0.0
