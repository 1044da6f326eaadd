from __future__ import annotations

import asyncio
from datetime import date

import pytest

from pricing_engine.domain.constraints import InvalidInputError
from pricing_engine.domain.models import DateRange, HistoricalBasis, RiskLevel
from pricing_engine.services.cache_service import ResultCache
from pricing_engine.services.overbooking_service import OverbookingAnalyzer
from pricing_engine.utils.config import get_settings


TODAY = date(2026, 7, 1)
WEEKEND_STAY = DateRange(check_in=date(2026, 7, 10), check_out=date(2026, 7, 12))


class FakeHistory:
    def __init__(self, basis=None, fail=False) -> None:
        self.basis = basis
        self.fail = fail
        self.requests: list[tuple[str, str]] = []

    async def get_historical_overbooking_outcomes(self, room_type, period_profile):
        self.requests.append((room_type, period_profile))
        if self.fail:
            raise RuntimeError("history backend down")
        return self.basis


def basis(**overrides) -> HistoricalBasis:
    defaults = {
        "sample_size": 40,
        "no_show_rate": 0.12,
        "confidence": 0.9,
        "safe_oversell_events": 6,
    }
    defaults.update(overrides)
    return HistoricalBasis(**defaults)


def _analyzer(history: FakeHistory) -> OverbookingAnalyzer:
    settings = get_settings()
    return OverbookingAnalyzer(
        history_client=history,
        cache=ResultCache(settings=settings),
        settings=settings,
        today=lambda: TODAY,
    )


# --- defaults closed ---

def test_history_failure_defaults_closed() -> None:
    assessment = asyncio.run(_analyzer(FakeHistory(fail=True)).assess(WEEKEND_STAY, "standard"))

    assert assessment.can_overbook is False
    assert assessment.risk_level is RiskLevel.HIGH
    assert assessment.max_overbooking == 0


def test_small_sample_is_high_risk() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis(sample_size=5))

    assert assessment.can_overbook is False
    assert assessment.risk_level is RiskLevel.HIGH


def test_low_no_show_rate_is_high_risk() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis(no_show_rate=0.02))

    assert assessment.risk_level is RiskLevel.HIGH
    assert assessment.max_overbooking == 0


# --- risk tiers ---

def test_frequent_no_shows_with_confidence_are_low_risk() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis())

    assert assessment.can_overbook is True
    assert assessment.risk_level is RiskLevel.LOW
    assert assessment.max_overbooking == 6


def test_moderate_no_shows_are_medium_risk_with_halved_allowance() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis(no_show_rate=0.07, safe_oversell_events=5))

    assert assessment.can_overbook is True
    assert assessment.risk_level is RiskLevel.MEDIUM
    assert assessment.max_overbooking == 2


def test_low_confidence_caps_risk_at_medium() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis(confidence=0.5))

    assert assessment.risk_level is RiskLevel.MEDIUM


def test_no_safe_events_keeps_door_closed() -> None:
    assessment = _analyzer(FakeHistory()).evaluate(basis(safe_oversell_events=0))

    assert assessment.can_overbook is False
    assert assessment.risk_level is RiskLevel.LOW
    assert assessment.max_overbooking == 0


# --- assess workflow ---

def test_assess_looks_up_history_by_period_profile() -> None:
    history = FakeHistory(basis=basis())

    assessment = asyncio.run(_analyzer(history).assess(WEEKEND_STAY, "standard"))

    assert history.requests == [("standard", "peak:weekend")]
    assert assessment.historical_basis == basis()


def test_assess_result_is_cached() -> None:
    history = FakeHistory(basis=basis())
    analyzer = _analyzer(history)

    asyncio.run(analyzer.assess(WEEKEND_STAY, "standard"))
    asyncio.run(analyzer.assess(WEEKEND_STAY, "standard"))

    assert len(history.requests) == 1


def test_failed_assessment_is_not_cached() -> None:
    history = FakeHistory(basis=basis(), fail=True)
    analyzer = _analyzer(history)

    asyncio.run(analyzer.assess(WEEKEND_STAY, "standard"))
    history.fail = False
    assessment = asyncio.run(analyzer.assess(WEEKEND_STAY, "standard"))

    assert assessment.can_overbook is True


@pytest.mark.parametrize("room_type", ["", "   "])
def test_assess_requires_room_type(room_type: str) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(_analyzer(FakeHistory()).assess(WEEKEND_STAY, room_type))


def test_assess_rejects_past_stay() -> None:
    past = DateRange(check_in=date(2026, 6, 20), check_out=date(2026, 6, 22))

    with pytest.raises(InvalidInputError):
        asyncio.run(_analyzer(FakeHistory()).assess(past, "standard"))
