"""Occupancy model training and forward availability forecasts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Optional

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.dummy import DummyClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

from pricing_engine.domain.models import (
    BLOCKING_STATUSES,
    AvailabilityForecast,
    DateRange,
    ForecastDay,
)
from pricing_engine.repository.data_repository import DataRepository, NightlyOccupancy
from pricing_engine.services.factor_service import classify_demand
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


class ForecastError(Exception):
    """Base exception for forecast workflow failures."""


class ModelNotReadyError(ForecastError):
    """Raised when forecasting is attempted before successful model training."""


@dataclass(frozen=True)
class ModelMetadata:
    model_type: str
    model_version: str
    trained_at: str
    training_rows: int

    def to_dict(self) -> dict[str, str | int]:
        return {
            "model_type": self.model_type,
            "model_version": self.model_version,
            "trained_at": self.trained_at,
            "training_rows": self.training_rows,
        }


class DemandForecastService:
    """Trains a nightly occupancy classifier and serves availability forecasts."""

    _FEATURE_COLUMNS = ["day_of_week", "month", "room_type"]

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._model: Optional[Pipeline] = None
        self._model_lock = RLock()
        self._model_metadata: Optional[ModelMetadata] = None

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    def _build_training_frame(self, records: list[NightlyOccupancy]) -> pd.DataFrame:
        frame = pd.DataFrame(
            [
                {
                    "night": pd.Timestamp(record.night),
                    "room_type": record.room_type,
                    "occupied": record.occupied,
                }
                for record in records
            ]
        )
        if frame.empty:
            return frame
        frame["day_of_week"] = frame["night"].dt.dayofweek.astype(int)
        frame["month"] = frame["night"].dt.month.astype(int)
        return frame

    def _feature_frame(self, date_range: DateRange, room_types: list[str]) -> pd.DataFrame:
        rows = [
            {
                "day_of_week": night.weekday(),
                "month": night.month,
                "room_type": room_type,
            }
            for night in date_range.iter_nights()
            for room_type in room_types
        ]
        return pd.DataFrame(rows, columns=self._FEATURE_COLUMNS)

    def train_model(self) -> None:
        """Train on trailing nightly occupancy and keep the model in memory."""
        with self._model_lock:
            logger.info("Forecast training started")
            until = datetime.now(timezone.utc).date()
            since = until - timedelta(days=self._settings.forecast_history_days)
            records = self._repository.get_nightly_occupancy_history(since, until)
            if len(records) < self._settings.forecast_min_training_rows:
                raise ModelNotReadyError("Insufficient occupancy history for model training")

            frame = self._build_training_frame(records)
            x_train = frame[self._FEATURE_COLUMNS]
            y_train = frame["occupied"].astype(int)

            preprocessor = ColumnTransformer(
                transformers=[
                    (
                        "categorical",
                        OneHotEncoder(handle_unknown="ignore"),
                        ["room_type", "day_of_week", "month"],
                    ),
                ]
            )
            if y_train.nunique() >= 2:
                classifier = LogisticRegression(
                    max_iter=self._settings.forecast_model_max_iter,
                    random_state=self._settings.forecast_random_state,
                )
                model_name = "logistic_regression"
            else:
                classifier = DummyClassifier(strategy="most_frequent")
                model_name = "dummy_most_frequent"
                logger.warning(
                    "Training labels contained a single class. Falling back to %s",
                    model_name,
                )

            pipeline = Pipeline(
                steps=[
                    ("preprocessor", preprocessor),
                    ("classifier", classifier),
                ]
            )
            pipeline.fit(x_train, y_train)

            self._model = pipeline
            self._model_metadata = ModelMetadata(
                model_type=model_name,
                model_version=self._settings.forecast_model_version,
                trained_at=datetime.now(timezone.utc).isoformat(),
                training_rows=len(records),
            )
            logger.info(
                "Forecast training completed | rows=%s | model=%s | version=%s",
                len(records),
                model_name,
                self._settings.forecast_model_version,
            )

    def get_model_metadata(self) -> dict[str, Any]:
        with self._model_lock:
            if self._model_metadata is None:
                raise ModelNotReadyError("Model metadata is unavailable; train model first")
            return dict(self._model_metadata.to_dict())

    def _occupied_probabilities(self, features: pd.DataFrame) -> np.ndarray:
        if self._model is None:
            raise ModelNotReadyError("Model is not trained; call train_model() first")
        classes = list(self._model.classes_)  # type: ignore[attr-defined]
        if 1 not in classes:
            return np.zeros(len(features))
        return self._model.predict_proba(features)[:, classes.index(1)]

    def forecast(self, date_range: DateRange, room_type: Optional[str] = None) -> AvailabilityForecast:
        """Blend known bookings with model probabilities, night by night."""
        with self._model_lock:
            rooms = [
                room
                for room in self._repository.list_rooms()
                if room_type is None or room.room_type.lower() == room_type.lower()
            ]
            if not rooms:
                return AvailabilityForecast(
                    predictions=(),
                    confidence=0.0,
                    message=f"No rooms of type {room_type}",
                )

            room_types = [room.room_type for room in rooms]
            features = self._feature_frame(date_range, room_types)
            probabilities = self._occupied_probabilities(features).reshape(
                date_range.nights,
                len(rooms),
            )

            booked: set[tuple[int, Any]] = set()
            for reservation in self._repository.get_reservations_in_range(
                date_range,
                [room.room_id for room in rooms],
                statuses=BLOCKING_STATUSES,
            ):
                for night in reservation.stay.iter_nights():
                    booked.add((reservation.room_id, night))

            predictions: list[ForecastDay] = []
            for night_index, night in enumerate(date_range.iter_nights()):
                row = probabilities[night_index].copy()
                for room_index, room in enumerate(rooms):
                    if (room.room_id, night) in booked:
                        row[room_index] = 1.0
                occupancy = float(np.clip(row.mean(), 0.0, 1.0))
                predictions.append(
                    ForecastDay(
                        date=night,
                        predicted_occupancy=round(occupancy, 4),
                        expected_available_rooms=int(round(len(rooms) * (1.0 - occupancy))),
                        demand_level=classify_demand(occupancy),
                    )
                )

            confidence = float(np.mean(np.abs(probabilities - 0.5) * 2.0))
            logger.info(
                "Availability forecast completed | check_in=%s | nights=%s | room_type=%s | confidence=%.4f",
                date_range.check_in.isoformat(),
                date_range.nights,
                room_type,
                confidence,
            )
            return AvailabilityForecast(
                predictions=tuple(predictions),
                confidence=round(confidence, 4),
            )
