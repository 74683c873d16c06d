"""Download job endpoints.

- POST /api/jobs
- GET /api/jobs/current
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, status

from homedash.api.schemas import (
    CurrentJobResponse,
    ErrorDetail,
    JobAcceptedResponse,
    JobStartRequest,
)
from homedash.core.errors import APIError, ErrorCode
from homedash.middleware.auth import require_api_key
from homedash.services.job_controller import JobController, RejectReason

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["jobs"], dependencies=[Depends(require_api_key)])

_REJECT_TO_ERROR_CODE: Dict[RejectReason, str] = {
    RejectReason.INVALID_TARGET: ErrorCode.INVALID_TARGET,
    RejectReason.ALREADY_RUNNING: ErrorCode.JOB_ALREADY_RUNNING,
    RejectReason.UNCONFIGURED: ErrorCode.UNCONFIGURED,
}


# Dependency placeholder (to be configured in main app)
async def get_job_controller() -> JobController:
    """Get job controller instance."""
    raise NotImplementedError("Job controller dependency not configured")


@router.post(
    "/jobs",
    response_model=JobAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorDetail, "description": "Invalid target URL"},
        409: {"model": ErrorDetail, "description": "A job is already running"},
        500: {"model": ErrorDetail, "description": "Output root not configured"},
    },
)
async def start_job(
    request: JobStartRequest,
    controller: JobController = Depends(get_job_controller),  # noqa: B008
) -> Any:
    """
    Start a download job.

    The job runs in the background; its output and outcome are pushed over
    the ``/ws/events`` WebSocket. Only one job runs at a time.

    Raises:
        APIError: If the target is invalid, a job is running or the output
            root is not configured.
    """
    result = await controller.start(request.target)

    if not result.accepted:
        assert result.reason is not None  # nosec B101
        raise APIError(_REJECT_TO_ERROR_CODE[result.reason], result.message)

    assert result.job is not None  # nosec B101
    return JobAcceptedResponse(message=result.message, job=result.job.to_dict())


@router.get("/jobs/current", response_model=CurrentJobResponse)
async def current_job(
    controller: JobController = Depends(get_job_controller),  # noqa: B008
) -> Any:
    """Current (running or last finished) job, or ``idle``."""
    job = controller.current()
    return CurrentJobResponse(
        state=controller.state.value,
        job=job.to_dict() if job else None,
    )
