"""
FastAPI dependency injection utilities.

Provides the requester identity, the screening service and its
collaborators to the route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fraud_screening.core.auth import (
    FRAUD_SCREEN,
    AuthenticatedUser,
    require_permission,
)
from fraud_screening.core.config import Settings, get_settings
from fraud_screening.core.database import get_session_factory
from fraud_screening.detection.pattern_detector import FraudDetector
from fraud_screening.persistence.screening_repository import ScreeningRepository
from fraud_screening.services.screening_service import ScreeningService


def require_fraud_screen(
    user: AuthenticatedUser = Depends(require_permission(FRAUD_SCREEN)),
) -> AuthenticatedUser:
    """Require fraud:screen permission to submit transactions for screening."""
    return user


RequireFraudScreen = Annotated[AuthenticatedUser, Depends(require_fraud_screen)]


def get_detector(request: Request) -> FraudDetector:
    """Pattern detector created in the application lifespan."""
    return request.app.state.detector


def get_screening_service(
    detector: FraudDetector = Depends(get_detector),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> ScreeningService:
    """Build a screening service wired to the shared detector and connection pool."""
    repository = ScreeningRepository(
        session_factory,
        timeout=settings.screening.persist_timeout,
    )
    return ScreeningService(
        detector=detector,
        repository=repository if settings.screening.persist_results else None,
        config=settings.screening,
    )


ScreeningServiceDep = Annotated[ScreeningService, Depends(get_screening_service)]
