from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from pricing_engine.domain.models import DateRange
from pricing_engine.repository.data_repository import DataRepository
from pricing_engine.services.forecast_service import DemandForecastService, ModelNotReadyError
from pricing_engine.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, **overrides):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, **overrides)


def _seeded_service(tmp_path, filename: str, **overrides) -> tuple[DataRepository, DemandForecastService]:
    settings = _build_test_settings(tmp_path, filename, **overrides)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_synthetic_data()
    return repository, DemandForecastService(repository=repository, settings=settings)


def _upcoming(days_ahead: int, nights: int) -> DateRange:
    check_in = datetime.now(timezone.utc).date() + timedelta(days=days_ahead)
    return DateRange(check_in=check_in, check_out=check_in + timedelta(days=nights))


def test_forecast_returns_one_prediction_per_night(tmp_path):
    _, service = _seeded_service(tmp_path, "forecast_test.db")
    service.train_model()

    forecast = service.forecast(_upcoming(3, 4), "standard")

    assert len(forecast.predictions) == 4
    assert 0.0 <= forecast.confidence <= 1.0
    for day in forecast.predictions:
        assert 0.0 <= day.predicted_occupancy <= 1.0
        assert 0 <= day.expected_available_rooms <= 4


def test_known_bookings_pin_occupancy(tmp_path):
    repository, service = _seeded_service(tmp_path, "booked_test.db")
    service.train_model()
    stay = _upcoming(100, 2)
    for room in repository.list_rooms():
        if room.room_type == "suite":
            repository.create_reservation(room.room_id, stay.check_in, stay.check_out)

    forecast = service.forecast(stay, "suite")

    assert [day.predicted_occupancy for day in forecast.predictions] == [1.0, 1.0]
    assert [day.expected_available_rooms for day in forecast.predictions] == [0, 0]


def test_unknown_room_type_yields_empty_forecast(tmp_path):
    _, service = _seeded_service(tmp_path, "unknown_type.db")
    service.train_model()

    forecast = service.forecast(_upcoming(3, 2), "penthouse")

    assert forecast.predictions == ()
    assert forecast.confidence == 0.0
    assert forecast.message


def test_forecast_before_training_raises(tmp_path):
    _, service = _seeded_service(tmp_path, "untrained.db")

    assert service.is_ready is False
    with pytest.raises(ModelNotReadyError):
        service.forecast(_upcoming(3, 2))
    with pytest.raises(ModelNotReadyError):
        service.get_model_metadata()


def test_training_requires_minimum_history(tmp_path):
    _, service = _seeded_service(tmp_path, "thin_history.db", forecast_min_training_rows=10**7)

    with pytest.raises(ModelNotReadyError):
        service.train_model()


def test_model_metadata_after_training(tmp_path):
    _, service = _seeded_service(tmp_path, "metadata.db")
    service.train_model()

    metadata = service.get_model_metadata()

    assert service.is_ready is True
    assert metadata["model_type"] in {"logistic_regression", "dummy_most_frequent"}
    assert metadata["model_version"] == "v1"
    assert metadata["training_rows"] > 0
