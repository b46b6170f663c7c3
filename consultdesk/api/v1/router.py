"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from consultdesk.api.v1 import consultations, health, providers

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Booking and consultation lifecycle
api_router.include_router(
    consultations.router,
    prefix="/consultations",
    tags=["consultations"],
)

# Provider directory
api_router.include_router(
    providers.router,
    prefix="/providers",
    tags=["providers"],
)
