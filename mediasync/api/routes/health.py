"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve sync requests?)

Readiness checks the origin bucket and every replica bucket with the same
HEAD call the replicator uses for preflight, so "ready" means a sync
started now would get past preflight.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...core.replication.errors import ConfigurationFailure
from ..dependencies import (
    OriginClientDep,
    SettingsDep,
    TargetClientFactoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    Fast and dependency-free; used by load balancers and orchestrators.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": settings.storage_mock_mode,
            "max_concurrency": settings.max_concurrency,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle sync requests. Checks buckets.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    origin: OriginClientDep,
    client_factory: TargetClientFactoryDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Checks configuration, then the origin bucket, then every replica.
    Returns 503 if any check fails.
    """
    checks: list[ReadinessCheck] = []

    # Check configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    # Check origin bucket
    try:
        await asyncio.to_thread(origin.head)
        checks.append(ReadinessCheck(name="origin", status="ok"))
    except Exception as e:
        logger.error("Origin health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="origin", status="error", error=str(e)))

    # Check replicas (skipped when configuration already failed on them)
    try:
        targets = settings.replica_targets_list
    except ConfigurationFailure:
        targets = []

    for target in targets:
        try:
            client = client_factory(target)
            await asyncio.to_thread(client.head)
            checks.append(ReadinessCheck(name=f"replica:{target.label}", status="ok"))
        except Exception as e:
            checks.append(ReadinessCheck(
                name=f"replica:{target.label}",
                status="error",
                error=str(e)
            ))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
