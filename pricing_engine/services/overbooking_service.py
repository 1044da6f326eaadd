"""Oversell risk assessment from historical no-show outcomes."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from pricing_engine.domain.constraints import InvalidInputError, validate_forward_range
from pricing_engine.domain.models import (
    DateRange,
    HistoricalBasis,
    OverbookingAssessment,
    RiskLevel,
)
from pricing_engine.domain.seasons import period_profile
from pricing_engine.services.cache_service import ResultCache, build_cache_key
from pricing_engine.services.collaborators import OverbookingHistoryClient, call_collaborator
from pricing_engine.services.factor_service import utc_today
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


def closed_assessment(message: str, basis: Optional[HistoricalBasis] = None) -> OverbookingAssessment:
    return OverbookingAssessment(
        can_overbook=False,
        risk_level=RiskLevel.HIGH,
        max_overbooking=0,
        historical_basis=basis,
        message=message,
    )


class OverbookingAnalyzer:
    """Decides whether overselling a room type is safe; defaults closed."""

    def __init__(
        self,
        history_client: OverbookingHistoryClient,
        cache: ResultCache,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._settings = settings or get_settings()
        self._history_client = history_client
        self._cache = cache
        self._today = today

    def risk_level(self, basis: HistoricalBasis) -> RiskLevel:
        settings = self._settings
        if basis.sample_size < settings.overbooking_min_sample_size:
            return RiskLevel.HIGH
        if (
            basis.no_show_rate >= settings.overbooking_low_risk_no_show_rate
            and basis.confidence >= settings.overbooking_min_confidence
        ):
            return RiskLevel.LOW
        if basis.no_show_rate >= settings.overbooking_medium_risk_no_show_rate:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    def evaluate(self, basis: HistoricalBasis) -> OverbookingAssessment:
        risk = self.risk_level(basis)
        safe_events = max(0, int(basis.safe_oversell_events))
        if risk is RiskLevel.LOW:
            max_overbooking = safe_events
        elif risk is RiskLevel.MEDIUM:
            max_overbooking = safe_events // 2
        else:
            return closed_assessment("Historical no-show rate does not support overbooking", basis)
        if max_overbooking == 0:
            return OverbookingAssessment(
                can_overbook=False,
                risk_level=risk,
                max_overbooking=0,
                historical_basis=basis,
                message="No historically safe oversell events for this profile",
            )
        return OverbookingAssessment(
            can_overbook=True,
            risk_level=risk,
            max_overbooking=max_overbooking,
            historical_basis=basis,
            message=f"Overbooking by up to {max_overbooking} room(s) is {risk.value} risk",
        )

    async def assess(self, date_range: DateRange, room_type: str) -> OverbookingAssessment:
        if not room_type or not room_type.strip():
            raise InvalidInputError("room_type is required")
        validate_forward_range(date_range, self._today())

        profile = period_profile(date_range)
        cache_key = build_cache_key(
            "overbooking",
            room_type=room_type.lower(),
            period_profile=profile,
            check_in=date_range.check_in.isoformat(),
            check_out=date_range.check_out.isoformat(),
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result = await call_collaborator(
            "overbooking_history",
            lambda: self._history_client.get_historical_overbooking_outcomes(room_type, profile),
            self._settings.collaborator_timeout_seconds,
        )
        if not result.ok or result.value is None:
            return closed_assessment(result.error or "Historical outcomes unavailable")

        assessment = self.evaluate(result.value)
        self._cache.set(cache_key, assessment)
        logger.info(
            "Overbooking assessed | room_type=%s | profile=%s | risk=%s | max=%s",
            room_type,
            profile,
            assessment.risk_level.value,
            assessment.max_overbooking,
        )
        return assessment
