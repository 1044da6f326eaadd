"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str = "Dynamic Pricing & Availability Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/pricing_engine.db")

    cache_ttl_seconds: float = 300.0
    collaborator_timeout_seconds: float = 5.0
    calendar_max_nights: int = 366

    pricing_min_multiplier: float = 0.5
    pricing_max_multiplier: float = 2.0
    pricing_default_occupancy_rate: float = 0.5
    pricing_default_room_demand: float = 1.0

    overbooking_min_sample_size: int = 10
    overbooking_low_risk_no_show_rate: float = 0.10
    overbooking_medium_risk_no_show_rate: float = 0.05
    overbooking_min_confidence: float = 0.7
    overbooking_full_confidence_samples: int = 30

    forecast_history_days: int = 180
    forecast_min_training_rows: int = 30
    forecast_model_max_iter: int = 500
    forecast_random_state: int = 42
    forecast_model_version: str = "v1"

    synthetic_random_seed: int = 42
    synthetic_seed_days: int = 180
    synthetic_future_days: int = 60
    synthetic_weekday_booking_probability: float = 0.45
    synthetic_weekend_booking_probability: float = 0.75


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment overrides."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        cache_ttl_seconds=_env_float("CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
        collaborator_timeout_seconds=_env_float(
            "COLLABORATOR_TIMEOUT_SECONDS",
            defaults.collaborator_timeout_seconds,
        ),
        calendar_max_nights=_env_int("CALENDAR_MAX_NIGHTS", defaults.calendar_max_nights),
        pricing_min_multiplier=_env_float(
            "PRICING_MIN_MULTIPLIER",
            defaults.pricing_min_multiplier,
        ),
        pricing_max_multiplier=_env_float(
            "PRICING_MAX_MULTIPLIER",
            defaults.pricing_max_multiplier,
        ),
        overbooking_min_sample_size=_env_int(
            "OVERBOOKING_MIN_SAMPLE_SIZE",
            defaults.overbooking_min_sample_size,
        ),
        forecast_history_days=_env_int("FORECAST_HISTORY_DAYS", defaults.forecast_history_days),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", defaults.synthetic_random_seed),
    )
