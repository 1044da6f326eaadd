"""Shared FastAPI dependency providers and error mapping for the controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from pricing_engine.domain.constraints import InvalidInputError, RoomNotFoundError
from pricing_engine.services.collaborators import ServiceUnavailableError
from pricing_engine.services.engine import PricingAvailabilityEngine
from pricing_engine.utils.logger import get_logger


logger = get_logger(__name__)


def get_engine(request: Request) -> PricingAvailabilityEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pricing engine is not initialized",
        )
    return engine


def to_http_error(exc: Exception, action: str) -> HTTPException:
    """Translate engine errors into HTTP responses; unknown errors become 500."""
    if isinstance(exc, RoomNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ServiceUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    logger.exception("Unexpected failure while trying to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )
