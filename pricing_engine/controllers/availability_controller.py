"""HTTP controller layer for availability, calendars, overbooking and forecasts."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator

from pricing_engine.controllers.dependencies import get_engine, to_http_error
from pricing_engine.domain.models import (
    AvailabilityQuery,
    Conflict,
    DateRange,
    RoomFilters,
    RoomRecord,
)
from pricing_engine.services.engine import PricingAvailabilityEngine


router = APIRouter(prefix="/availability", tags=["availability"])


class AvailabilityCheckRequest(BaseModel):
    check_in: date
    check_out: date
    room_id: Optional[int] = Field(default=None, gt=0)
    room_type: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    exclude_reservation_id: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_target(self) -> "AvailabilityCheckRequest":
        if self.room_id is None and not self.room_type:
            raise ValueError("either room_id or room_type is required")
        return self


class ConflictResponse(BaseModel):
    reservation_id: int
    room_id: int
    check_in: date
    check_out: date
    status: str


class AvailabilityCheckResponse(BaseModel):
    available: bool
    conflicts: list[ConflictResponse]
    message: str


class RoomResponse(BaseModel):
    room_id: int
    number: str
    room_type: str
    capacity: int
    base_price: float
    status: str


class AvailableRoomsResponse(BaseModel):
    rooms: list[RoomResponse]
    total: int = Field(ge=0)


class RoomDayResponse(BaseModel):
    status: str
    reservation_id: Optional[int] = None


class OccupancyCalendarResponse(BaseModel):
    calendar: dict[str, dict[str, RoomDayResponse]]
    occupancy_rate: float = Field(ge=0.0, le=1.0)
    message: str


class OverbookingRequest(BaseModel):
    check_in: date
    check_out: date
    room_type: str = Field(min_length=1)


class HistoricalBasisResponse(BaseModel):
    sample_size: int = Field(ge=0)
    no_show_rate: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    safe_oversell_events: int = Field(ge=0)


class OverbookingResponse(BaseModel):
    can_overbook: bool
    risk_level: str
    max_overbooking: int = Field(ge=0)
    historical_basis: Optional[HistoricalBasisResponse] = None
    message: str


class PredictRequest(BaseModel):
    check_in: date
    check_out: date
    room_type: Optional[str] = None

    @field_validator("room_type")
    @classmethod
    def validate_room_type(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("room_type must be non-empty when provided")
        return value


class ForecastDayResponse(BaseModel):
    date: date
    predicted_occupancy: float = Field(ge=0.0, le=1.0)
    expected_available_rooms: int = Field(ge=0)
    demand_level: str


class PredictResponse(BaseModel):
    predictions: list[ForecastDayResponse]
    confidence: float = Field(ge=0.0, le=1.0)
    message: str


class AvailabilityStatsResponse(BaseModel):
    period_days: int
    occupancy_rate: float = Field(ge=0.0, le=1.0)
    total_room_nights: int
    booked_room_nights: int
    demand_level: str


def _conflict_response(conflict: Conflict) -> ConflictResponse:
    return ConflictResponse(
        reservation_id=conflict.reservation_id,
        room_id=conflict.room_id,
        check_in=conflict.check_in,
        check_out=conflict.check_out,
        status=conflict.status,
    )


def _room_response(room: RoomRecord) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        number=room.number,
        room_type=room.room_type,
        capacity=room.capacity,
        base_price=room.base_price,
        status=room.status,
    )


def _parse_room_ids(raw: Optional[str]) -> Optional[list[int]]:
    if raw is None or not raw.strip():
        return None
    return [int(item) for item in raw.split(",") if item.strip()]


@router.post(
    "/check",
    response_model=AvailabilityCheckResponse,
    status_code=status.HTTP_200_OK,
)
async def check_availability(
    payload: AvailabilityCheckRequest,
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> AvailabilityCheckResponse:
    query = AvailabilityQuery(
        date_range=DateRange(check_in=payload.check_in, check_out=payload.check_out),
        room_id=payload.room_id,
        room_type=payload.room_type,
        capacity=payload.capacity,
        exclude_reservation_id=payload.exclude_reservation_id,
    )
    try:
        result = await engine.check_availability(query)
    except Exception as exc:
        raise to_http_error(exc, "check availability") from exc
    return AvailabilityCheckResponse(
        available=result.available,
        conflicts=[_conflict_response(conflict) for conflict in result.conflicts],
        message=result.message,
    )


@router.get(
    "/rooms",
    response_model=AvailableRoomsResponse,
    status_code=status.HTTP_200_OK,
)
async def available_rooms(
    check_in: date,
    check_out: date,
    room_type: Optional[str] = None,
    capacity: Optional[int] = Query(default=None, gt=0),
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> AvailableRoomsResponse:
    try:
        rooms = await engine.get_available_rooms(
            DateRange(check_in=check_in, check_out=check_out),
            RoomFilters(room_type=room_type, capacity=capacity),
        )
    except Exception as exc:
        raise to_http_error(exc, "list available rooms") from exc
    return AvailableRoomsResponse(rooms=[_room_response(room) for room in rooms], total=len(rooms))


@router.get(
    "/calendar",
    response_model=OccupancyCalendarResponse,
    status_code=status.HTTP_200_OK,
)
async def occupancy_calendar(
    start_date: date,
    end_date: date,
    room_ids: Optional[str] = Query(default=None, pattern=r"^\d+(,\d+)*$"),
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> OccupancyCalendarResponse:
    try:
        calendar = await engine.get_occupancy_calendar(
            DateRange(check_in=start_date, check_out=end_date),
            _parse_room_ids(room_ids),
        )
    except Exception as exc:
        raise to_http_error(exc, "build occupancy calendar") from exc
    return OccupancyCalendarResponse(
        calendar={
            night.isoformat(): {
                str(room_id): RoomDayResponse(status=state.status, reservation_id=state.reservation_id)
                for room_id, state in rooms.items()
            }
            for night, rooms in sorted(calendar.days.items())
        },
        occupancy_rate=calendar.occupancy_rate,
        message=calendar.message,
    )


@router.post(
    "/overbooking",
    response_model=OverbookingResponse,
    status_code=status.HTTP_200_OK,
)
async def overbooking_opportunity(
    payload: OverbookingRequest,
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> OverbookingResponse:
    try:
        assessment = await engine.check_overbooking_opportunity(
            DateRange(check_in=payload.check_in, check_out=payload.check_out),
            payload.room_type,
        )
    except Exception as exc:
        raise to_http_error(exc, "analyze overbooking") from exc
    basis = assessment.historical_basis
    return OverbookingResponse(
        can_overbook=assessment.can_overbook,
        risk_level=assessment.risk_level.value,
        max_overbooking=assessment.max_overbooking,
        historical_basis=(
            HistoricalBasisResponse(
                sample_size=basis.sample_size,
                no_show_rate=basis.no_show_rate,
                confidence=basis.confidence,
                safe_oversell_events=basis.safe_oversell_events,
            )
            if basis is not None
            else None
        ),
        message=assessment.message,
    )


@router.post(
    "/predict",
    response_model=PredictResponse,
    status_code=status.HTTP_200_OK,
)
async def predict_availability(
    payload: PredictRequest,
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> PredictResponse:
    try:
        forecast = await engine.predict_availability(
            DateRange(check_in=payload.check_in, check_out=payload.check_out),
            payload.room_type,
        )
    except Exception as exc:
        raise to_http_error(exc, "predict availability") from exc
    return PredictResponse(
        predictions=[
            ForecastDayResponse(
                date=day.date,
                predicted_occupancy=day.predicted_occupancy,
                expected_available_rooms=day.expected_available_rooms,
                demand_level=day.demand_level.value,
            )
            for day in forecast.predictions
        ],
        confidence=forecast.confidence,
        message=forecast.message,
    )


@router.get(
    "/stats",
    response_model=AvailabilityStatsResponse,
    status_code=status.HTTP_200_OK,
)
async def availability_stats(
    period_days: int = Query(default=30, gt=0, le=365),
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> AvailabilityStatsResponse:
    try:
        stats = await engine.get_availability_stats(period_days)
    except Exception as exc:
        raise to_http_error(exc, "load availability stats") from exc
    return AvailabilityStatsResponse(
        period_days=stats.period_days,
        occupancy_rate=stats.occupancy_rate,
        total_room_nights=stats.total_room_nights,
        booked_room_nights=stats.booked_room_nights,
        demand_level=stats.demand_level.value,
    )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(engine: PricingAvailabilityEngine = Depends(get_engine)) -> None:
    engine.clear_cache()
