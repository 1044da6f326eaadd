"""HTTP controller layer for dynamic pricing."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from pricing_engine.controllers.dependencies import get_engine, to_http_error
from pricing_engine.domain.models import DateRange, PricingResult
from pricing_engine.services.engine import PricingAvailabilityEngine


router = APIRouter(prefix="/pricing", tags=["pricing"])


class DynamicPriceRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    room_id: int = Field(gt=0)
    check_in: date
    check_out: date
    base_price: float


class PricingFactorsResponse(BaseModel):
    occupancy_rate: float = Field(ge=0.0, le=1.0)
    seasonality: float = Field(ge=0.0)
    day_of_week: float = Field(ge=0.0)
    booking_window: float = Field(ge=0.0)
    local_events: float = Field(ge=0.0)
    room_type_demand: float = Field(ge=0.0)


class MarketConditionsResponse(BaseModel):
    competitor_pricing: str
    market_demand: str
    economic_factors: str


class DynamicPriceResponse(BaseModel):
    base_price: float
    dynamic_price: int
    adjustment_multiplier: float = Field(ge=0.5, le=2.0)
    factors: PricingFactorsResponse
    market_conditions: MarketConditionsResponse
    demand_level: str
    savings: float
    savings_percentage: int


class RecommendationsRequest(BaseModel):
    check_in: date
    check_out: date
    room_types: Optional[list[str]] = None

    @field_validator("room_types")
    @classmethod
    def validate_room_types(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        for room_type in value:
            if not room_type.strip():
                raise ValueError("room_types entries must be non-empty")
        return value


class RecommendationRow(BaseModel):
    room_id: int
    number: str
    room_type: str
    pricing: DynamicPriceResponse


class RecommendationsResponse(BaseModel):
    recommendations: list[RecommendationRow]


class PricePointResponse(BaseModel):
    date: date
    base_price: float
    dynamic_price: float


class PricingTrendsResponse(BaseModel):
    room_id: int
    trends: list[PricePointResponse]


def _to_price_response(result: PricingResult) -> DynamicPriceResponse:
    return DynamicPriceResponse(**result.to_dict())


@router.post(
    "/dynamic-price",
    response_model=DynamicPriceResponse,
    status_code=status.HTTP_200_OK,
)
async def calculate_dynamic_price(
    payload: DynamicPriceRequest,
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> DynamicPriceResponse:
    try:
        result = await engine.calculate_dynamic_price(
            room_id=payload.room_id,
            date_range=DateRange(check_in=payload.check_in, check_out=payload.check_out),
            base_price=payload.base_price,
        )
    except Exception as exc:
        raise to_http_error(exc, "calculate dynamic price") from exc
    return _to_price_response(result)


@router.post(
    "/recommendations",
    response_model=RecommendationsResponse,
    status_code=status.HTTP_200_OK,
)
async def pricing_recommendations(
    payload: RecommendationsRequest,
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> RecommendationsResponse:
    try:
        results = await engine.get_pricing_recommendations(
            DateRange(check_in=payload.check_in, check_out=payload.check_out),
            payload.room_types,
        )
    except Exception as exc:
        raise to_http_error(exc, "build pricing recommendations") from exc
    return RecommendationsResponse(
        recommendations=[
            RecommendationRow(
                room_id=room.room_id,
                number=room.number,
                room_type=room.room_type,
                pricing=_to_price_response(pricing),
            )
            for room, pricing in results
        ]
    )


@router.get(
    "/trends/{room_id}",
    response_model=PricingTrendsResponse,
    status_code=status.HTTP_200_OK,
)
async def pricing_trends(
    room_id: int,
    days: int = Query(default=30, gt=0, le=365),
    engine: PricingAvailabilityEngine = Depends(get_engine),
) -> PricingTrendsResponse:
    try:
        points = await engine.get_pricing_trends(room_id, days)
    except Exception as exc:
        raise to_http_error(exc, "load pricing trends") from exc
    return PricingTrendsResponse(
        room_id=room_id,
        trends=[
            PricePointResponse(
                date=point.date,
                base_price=point.base_price,
                dynamic_price=point.dynamic_price,
            )
            for point in points
        ],
    )
