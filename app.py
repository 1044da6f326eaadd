"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository, forecaster and engine, registers routers,
and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from pricing_engine.controllers.availability_controller import router as availability_router
from pricing_engine.controllers.pricing_controller import router as pricing_router
from pricing_engine.repository.data_repository import DataRepository
from pricing_engine.repository.repository_client import RepositoryClient
from pricing_engine.services.engine import PricingAvailabilityEngine
from pricing_engine.services.forecast_service import DemandForecastService, ModelNotReadyError
from pricing_engine.utils.config import Settings, get_settings
from pricing_engine.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency is created here and exposed through app.state.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Repository (single SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services ---
    forecast_service = DemandForecastService(repository=repository, settings=settings)
    client = RepositoryClient(repository, forecaster=forecast_service)
    engine = PricingAvailabilityEngine.from_client(client, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(pricing_router)
    app.include_router(availability_router)

    app.state.repository = repository
    app.state.forecast_service = forecast_service
    app.state.engine = engine

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before seeding, and the forecaster trains on the
    seeded reservation history.
    """
    repository: DataRepository = app.state.repository
    forecast_service: DemandForecastService = app.state.forecast_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding synthetic rooms and history")
    repository.seed_synthetic_data()

    logger.info("Startup: training occupancy forecast model")
    try:
        forecast_service.train_model()
    except ModelNotReadyError as exc:
        # Availability predictions degrade to empty forecasts until retrained.
        logger.warning("Startup: forecast model not trained | reason=%s", exc)

    logger.info("Startup complete, engine ready")


# Module-level app object for uvicorn
app = create_app()
