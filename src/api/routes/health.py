"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from src.api.middleware.latency_logging import get_latency_stats
from src.core.realtime import get_connection_manager
from src.core.redis import check_redis_connection
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness probes.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.

    Returns:
        HealthResponse: Current health status with timestamp.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Database healthy"},
        503: {"description": "Database unhealthy"},
    },
    summary="Readiness check",
    description="Check if dependencies are available. Used for readiness probes.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check readiness of all dependencies.

    Verifies that the service can handle requests by checking:
    - Database connectivity (Supabase)
    - Offline mailbox connectivity (Redis)

    Only the database decides readiness. Without Redis, notifications are
    still stored and pushed live; offline recipients just miss the replay.

    Args:
        response: FastAPI response object for setting status code.

    Returns:
        ReadinessResponse: Status of all dependency checks.
    """
    checks: list[CheckResult] = []

    # Check database connection
    start_time = time.perf_counter()
    db_result = await check_database_connection()
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks.append(
        CheckResult(
            name="database",
            healthy=db_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=db_result.get("error"),
        )
    )

    # Check Redis connection
    start_time = time.perf_counter()
    redis_result = await check_redis_connection()
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks.append(
        CheckResult(
            name="redis",
            healthy=redis_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=redis_result.get("error"),
        )
    )

    overall_status = HealthStatus.HEALTHY if db_result["healthy"] else HealthStatus.UNHEALTHY

    if overall_status == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=overall_status, checks=checks)


@router.get(
    "/health/stats",
    summary="Runtime statistics",
    description="Request latency percentiles and live notification socket counts.",
)
async def stats_check() -> dict:
    """Return in-memory runtime statistics.

    Returns:
        dict: Latency stats overall and by path, plus connection counts.
    """
    latency_stats = get_latency_stats()
    return {
        "latency": latency_stats.get_stats(),
        "latency_by_path": latency_stats.get_stats_by_path(),
        "connections": get_connection_manager().get_stats(),
    }
