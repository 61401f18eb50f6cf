"""API routes package."""

from fastapi import APIRouter

from fraud_screening.api.routes.detect import router as detect_router
from fraud_screening.api.routes.health import router as health_router

# Create API router with all sub-routers
api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(detect_router)


__all__ = [
    "api_router",
    "detect_router",
    "health_router",
]
