"""File browser endpoints.

Every path is resolved inside the configured browser root; anything that
would escape it is answered with 403 before the filesystem is touched.
"""

from typing import Any, List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from homedash.api.schemas import BrowseEntry, error_responses
from homedash.core.config import StorageConfig
from homedash.core.exceptions import AccessDeniedError
from homedash.core.metrics import MetricsCollector
from homedash.middleware.auth import require_api_key
from homedash.services import indexer

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"], dependencies=[Depends(require_api_key)])


# Dependency placeholder (to be configured in main app)
async def get_storage_config() -> StorageConfig:
    """Get storage configuration."""
    raise NotImplementedError("Storage config dependency not configured")


@router.get(
    "/browse",
    response_model=List[BrowseEntry],
    response_model_exclude_none=True,
    responses=error_responses(403, 404, 500),
)
async def browse(
    path: str = Query("", description="Directory relative to the browser root"),
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> Any:
    """List one directory level, folders and files sorted by name."""
    try:
        entries = await run_in_threadpool(indexer.list_entries, storage.browser_root, path)
    except AccessDeniedError:
        MetricsCollector.record_sandbox_denial("browse")
        raise

    logger.debug("directory_listed", entries=len(entries))
    return [entry.to_dict() for entry in entries]


@router.get(
    "/download",
    response_class=FileResponse,
    responses=error_responses(400, 403, 404, 500),
)
async def download(
    path: Optional[str] = Query(None, description="File relative to the browser root"),
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> FileResponse:
    """Send a file as an attachment."""
    try:
        file_path = await run_in_threadpool(indexer.resolve_file, storage.browser_root, path)
    except AccessDeniedError:
        MetricsCollector.record_sandbox_denial("download")
        raise

    return FileResponse(file_path, filename=file_path.name)
