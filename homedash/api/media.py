"""Music library endpoints: catalog and streaming."""

from typing import Any, List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from homedash.api.files import get_storage_config
from homedash.api.schemas import MediaEntryResponse, error_responses
from homedash.core.config import StorageConfig
from homedash.core.exceptions import AccessDeniedError
from homedash.core.metrics import MetricsCollector
from homedash.middleware.auth import require_api_key
from homedash.services import indexer

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/media", tags=["media"], dependencies=[Depends(require_api_key)])


@router.get(
    "/catalog",
    response_model=List[MediaEntryResponse],
    responses=error_responses(500),
)
async def catalog(
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> Any:
    """All audio files under the media root, with artist and album from the folder layout."""
    entries = await run_in_threadpool(indexer.scan_media_root, storage.media_root)
    logger.info("media_catalog_scanned", tracks=len(entries))
    return [entry.to_dict() for entry in entries]


@router.get(
    "/stream",
    response_class=FileResponse,
    responses=error_responses(400, 403, 404, 500),
)
async def stream(
    path: Optional[str] = Query(None, description="Track path relative to the media root"),
    storage: StorageConfig = Depends(get_storage_config),  # noqa: B008
) -> FileResponse:
    """Stream an audio file. Range requests are honoured for seeking."""
    try:
        file_path = await run_in_threadpool(indexer.resolve_file, storage.media_root, path)
    except AccessDeniedError:
        MetricsCollector.record_sandbox_denial("stream")
        raise

    return FileResponse(file_path)
