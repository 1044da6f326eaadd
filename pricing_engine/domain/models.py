"""Domain models for dynamic pricing and room availability."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterator, Mapping, Optional


class DemandLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def rank(self) -> int:
        return _DEMAND_ORDER.index(self)


_DEMAND_ORDER = [
    DemandLevel.VERY_LOW,
    DemandLevel.LOW,
    DemandLevel.MEDIUM,
    DemandLevel.HIGH,
    DemandLevel.VERY_HIGH,
]


# Reservations in these states block new bookings for the same nights.
BLOCKING_STATUSES = frozenset({"confirmed", "checked_in"})
# Reservations in these states count as occupied room-nights.
OCCUPYING_STATUSES = BLOCKING_STATUSES | {"checked_out"}
# Rooms in these states can never be sold, whatever their reservations.
UNBOOKABLE_ROOM_STATUSES = ("maintenance", "out_of_order")


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class DateRange:
    """A stay from check-in (inclusive) to check-out (exclusive)."""

    check_in: date
    check_out: date

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def is_valid(self) -> bool:
        return self.check_out > self.check_in

    def is_forward_looking(self, today: date) -> bool:
        return self.check_in >= today

    def iter_nights(self) -> Iterator[date]:
        for offset in range(self.nights):
            yield self.check_in + timedelta(days=offset)

    def overlaps(self, other: "DateRange") -> bool:
        return self.check_in < other.check_out and other.check_in < self.check_out


@dataclass(frozen=True)
class PricingFactors:
    occupancy_rate: float
    seasonality: float
    day_of_week: float
    booking_window: float
    local_events: float
    room_type_demand: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class MarketConditions:
    competitor_pricing: str
    market_demand: str
    economic_factors: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class PricingResult:
    base_price: float
    dynamic_price: int
    adjustment_multiplier: float
    factors: PricingFactors
    market_conditions: MarketConditions
    demand_level: DemandLevel
    savings: float
    savings_percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_price": self.base_price,
            "dynamic_price": self.dynamic_price,
            "adjustment_multiplier": self.adjustment_multiplier,
            "factors": self.factors.to_dict(),
            "market_conditions": self.market_conditions.to_dict(),
            "demand_level": self.demand_level.value,
            "savings": self.savings,
            "savings_percentage": self.savings_percentage,
        }


@dataclass(frozen=True)
class RoomRecord:
    room_id: int
    number: str
    room_type: str
    capacity: int
    base_price: float
    status: str = "available"


@dataclass(frozen=True)
class RoomFilters:
    room_type: Optional[str] = None
    capacity: Optional[int] = None


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: int
    room_id: int
    check_in: date
    check_out: date
    status: str

    @property
    def stay(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)


@dataclass(frozen=True)
class Conflict:
    reservation_id: int
    room_id: int
    check_in: date
    check_out: date
    status: str


@dataclass(frozen=True)
class AvailabilityQuery:
    date_range: DateRange
    room_id: Optional[int] = None
    room_type: Optional[str] = None
    capacity: Optional[int] = None
    exclude_reservation_id: Optional[int] = None


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicts: tuple[Conflict, ...]
    message: str


@dataclass(frozen=True)
class RoomDayState:
    status: str
    reservation_id: Optional[int] = None


@dataclass(frozen=True)
class OccupancyCalendar:
    days: Mapping[date, Mapping[int, RoomDayState]]
    occupancy_rate: float
    message: str = ""


@dataclass(frozen=True)
class HistoricalBasis:
    """Aggregated oversell outcomes for one room type and period profile."""

    sample_size: int
    no_show_rate: float
    confidence: float
    safe_oversell_events: int


@dataclass(frozen=True)
class OverbookingAssessment:
    can_overbook: bool
    risk_level: RiskLevel
    max_overbooking: int
    historical_basis: Optional[HistoricalBasis]
    message: str = ""


@dataclass(frozen=True)
class ForecastDay:
    date: date
    predicted_occupancy: float
    expected_available_rooms: int
    demand_level: DemandLevel


@dataclass(frozen=True)
class AvailabilityForecast:
    predictions: tuple[ForecastDay, ...] = ()
    confidence: float = 0.0
    message: str = ""


@dataclass(frozen=True)
class PricePoint:
    date: date
    base_price: float
    dynamic_price: float


@dataclass(frozen=True)
class AvailabilityStats:
    period_days: int
    occupancy_rate: float
    total_room_nights: int
    booked_room_nights: int
    demand_level: DemandLevel
