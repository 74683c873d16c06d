"""Host statistics endpoint."""

from typing import Any

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from homedash.api.schemas import HostStatsResponse
from homedash.core.config import MonitoringConfig
from homedash.core.resources import get_host_stats
from homedash.middleware.auth import require_api_key

router = APIRouter(prefix="/api", tags=["stats"], dependencies=[Depends(require_api_key)])


# Dependency placeholder (to be configured in main app)
async def get_monitoring_config() -> MonitoringConfig:
    """Get monitoring configuration."""
    raise NotImplementedError("Monitoring config dependency not configured")


@router.get("/stats", response_model=HostStatsResponse)
async def host_stats(
    monitoring: MonitoringConfig = Depends(get_monitoring_config),  # noqa: B008
) -> Any:
    """CPU, memory and disk usage percentages plus CPU temperature."""
    # cpu_percent samples for a short interval and blocks meanwhile
    stats = await run_in_threadpool(get_host_stats, monitoring.stats_disk_path)
    return stats.to_dict()
