"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from testpilot import __version__
from testpilot.core.service_registry import ServiceRegistry, get_service_registry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(registry: ServiceRegistry = Depends(get_service_registry)):
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": registry.settings.app_name,
        "version": __version__,
        "environment": registry.policy_guard().environment.value,
    }
