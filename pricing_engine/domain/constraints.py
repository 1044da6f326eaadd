"""Domain-level validation rules for pricing and availability queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from pricing_engine.domain.models import AvailabilityQuery, DateRange, PricingFactors


class InvalidInputError(ValueError):
    """Raised for malformed date ranges, prices or query filters."""


class DataUnavailableError(InvalidInputError):
    """Raised when pricing factors cannot be derived from the date range."""


class RoomNotFoundError(InvalidInputError):
    """Raised when a queried room id does not exist."""


@dataclass(frozen=True)
class PricingConfig:
    min_multiplier: float
    max_multiplier: float
    default_occupancy_rate: float
    default_room_demand: float


def validate_pricing_config(config: PricingConfig) -> None:
    if config.min_multiplier <= 0.0:
        raise ValueError("min_multiplier must be > 0")
    if config.max_multiplier < config.min_multiplier:
        raise ValueError("max_multiplier must be >= min_multiplier")
    if not 0.0 <= config.default_occupancy_rate <= 1.0:
        raise ValueError("default_occupancy_rate must be between 0 and 1")
    if config.default_room_demand < 0.0:
        raise ValueError("default_room_demand must be >= 0")


def validate_date_range(date_range: DateRange) -> None:
    if not date_range.is_valid():
        raise InvalidInputError("check_out must be after check_in")


def validate_forward_range(date_range: DateRange, today: date) -> None:
    validate_date_range(date_range)
    if not date_range.is_forward_looking(today):
        raise InvalidInputError("check_in must not be in the past")


def validate_base_price(base_price: float) -> None:
    if base_price is None or base_price <= 0:
        raise InvalidInputError("base_price must be a positive number")


def validate_pricing_factors(factors: PricingFactors) -> None:
    if not 0.0 <= factors.occupancy_rate <= 1.0:
        raise InvalidInputError("occupancy_rate must be between 0 and 1")
    for name, value in factors.to_dict().items():
        if value < 0.0:
            raise InvalidInputError(f"{name} must be non-negative")


def validate_availability_query(query: AvailabilityQuery) -> None:
    if query.room_id is None and query.room_type is None:
        raise InvalidInputError("either room_id or room_type is required")
    if query.room_id is not None and query.room_id <= 0:
        raise InvalidInputError("room_id must be a positive integer")
    if query.capacity is not None and query.capacity <= 0:
        raise InvalidInputError("capacity must be a positive integer")
