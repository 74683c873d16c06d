"""Health check endpoints.

- /health: detailed component status
- /liveness: container liveness probe
- /readiness: traffic readiness probe
"""

import os
import time
from datetime import datetime, timezone
from typing import Literal, Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from homedash import __version__
from homedash.api.events import get_event_bus
from homedash.api.files import get_storage_config
from homedash.api.jobs import get_job_controller
from homedash.api.schemas import (
    ComponentHealth,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
)
from homedash.core.checks import check_downloader
from homedash.core.config import StorageConfig
from homedash.services.event_bus import EventBus
from homedash.services.job_controller import JobController

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# Reset when the application starts
_start_time: float = time.time()


def reset_start_time() -> None:
    """Restart the uptime clock."""
    global _start_time
    _start_time = time.time()


async def _check_downloader(controller: JobController) -> ComponentHealth:
    result = await check_downloader(controller.command)
    if result.available:
        return ComponentHealth(status="healthy", version=result.version)
    return ComponentHealth(
        status="unhealthy",
        details={"error": result.error or "downloader not available"},
    )


def _check_root(root: Optional[str]) -> ComponentHealth:
    """A root is healthy when configured and an existing directory.

    The media root is created on first scan, so a missing one is only
    reported, not treated as a failure.
    """
    if not root:
        return ComponentHealth(status="unhealthy", details={"error": "not configured"})
    return ComponentHealth(status="healthy", details={"exists": os.path.isdir(root)})


def _check_event_bus(event_bus: EventBus) -> ComponentHealth:
    return ComponentHealth(
        status="healthy",
        details={"subscribers": event_bus.subscriber_count},
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All components healthy"},
        503: {"description": "One or more components unhealthy"},
    },
)
async def health_check(
    controller: JobController = Depends(get_job_controller),  # noqa: B008
    event_bus: EventBus = Depends(get_event_bus),  # noqa: B008
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> JSONResponse:
    """
    Detailed health check endpoint.

    Verifies:
    - the download tool starts and reports a version
    - the browser and media roots are configured
    - the event bus (with its subscriber count)

    Returns HTTP 200 if all components are healthy,
    HTTP 503 if any component is unhealthy.
    """
    downloader = await _check_downloader(controller)
    components = {
        "downloader": downloader,
        "browser_root": _check_root(storage.browser_root),
        "media_root": _check_root(storage.media_root),
        "event_bus": _check_event_bus(event_bus),
    }

    all_healthy = all(c.status == "healthy" for c in components.values())
    overall_status: Literal["healthy", "unhealthy"] = "healthy" if all_healthy else "unhealthy"

    response = HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        components=components,
    )

    status_code = status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    logger.info(
        "health_check_completed",
        status=overall_status,
        components={k: v.status for k, v in components.items()},
    )

    return JSONResponse(content=response.model_dump(), status_code=status_code)


@router.get("/liveness", response_model=LivenessResponse)
async def liveness_check() -> LivenessResponse:
    """Returns HTTP 200 while the process is alive."""
    return LivenessResponse(status="alive")


@router.get(
    "/readiness",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Service is ready to accept traffic"},
        503: {"description": "Service is not ready"},
    },
)
async def readiness_check(
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> JSONResponse:
    """
    Readiness probe endpoint.

    Ready once the browser and media roots are configured. The download
    tool is not probed here; a missing binary surfaces as a spawn error
    event and on /health.
    """
    issues = []
    if not storage.browser_root:
        issues.append("Browser root not configured")
    if not storage.media_root:
        issues.append("Media root not configured")

    if issues:
        response = ReadinessResponse(status="not_ready", ready=False, message="; ".join(issues))
        return JSONResponse(
            content=response.model_dump(),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return JSONResponse(
        content=ReadinessResponse(status="ready", ready=True).model_dump(),
        status_code=status.HTTP_200_OK,
    )
