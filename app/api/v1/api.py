"""API v1 router configuration.

This module sets up the main API router and includes the sub-routers for
workflow execution and webhooks.
"""

from fastapi import APIRouter

from app.api.v1.executions import router as executions_router
from app.core.config import settings
from app.core.logging import logger

api_router = APIRouter()

# Include routers
api_router.include_router(executions_router, tags=["executions"])


@api_router.get("/health")
async def health_check():
    """Report service liveness with the running version and environment."""
    logger.debug("health_check_called")
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
