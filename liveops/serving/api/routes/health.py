"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from typing import Dict

from fastapi import APIRouter, Request, Response

from liveops.models.schemas import DetailedHealthResponse, HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Service health with database connectivity.

    Always answers 200; the status field carries the verdict.
    """
    return await request.app.state.services.diagnostics.health_check()


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """Connectivity plus per-table checks"""
    return await request.app.state.services.diagnostics.detailed_health_check()


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Returns 200 if the store answers, 503 otherwise.
    """
    health = await request.app.state.services.diagnostics.health_check()

    if health.status != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": health.error or "database_unavailable"}

    return {"status": "ready"}
