"""Health check endpoints."""

from fastapi import APIRouter, Response

from bikesafe.services.routing.provider import routing_provider

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(response: Response):
    """Readiness check for the routing provider.

    Returns HTTP 503 if the provider is not configured or cannot be reached.
    """
    checks = {
        "provider_configured": routing_provider.is_configured,
        "provider_reachable": False,
    }

    if checks["provider_configured"]:
        checks["provider_reachable"] = await routing_provider.check_reachable()

    all_healthy = all(checks.values())
    if not all_healthy:
        response.status_code = 503

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
    }
