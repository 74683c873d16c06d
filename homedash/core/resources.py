"""Host resource monitoring.

Snapshot of CPU, memory, disk and temperature for the dashboard's stats
widget, read through psutil.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional

import psutil
import structlog

logger = structlog.get_logger(__name__)

# Reported when the platform exposes no temperature sensor
DEFAULT_TEMPERATURE = 25


@dataclass
class HostStats:
    """Current host resource usage.

    Attributes:
        cpu: CPU load percentage (0-100).
        ram: Memory usage percentage (0-100).
        disk: Usage percentage of the monitored filesystem (0-100).
        temp: CPU temperature in degrees Celsius.
    """

    cpu: int
    ram: int
    disk: int
    temp: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _read_temperature() -> Optional[float]:
    """Best-effort CPU package temperature."""
    sensors = getattr(psutil, "sensors_temperatures", None)
    if sensors is None:
        return None

    try:
        readings = sensors()
    except (OSError, RuntimeError) as e:
        logger.debug("temperature_read_failed", error=str(e))
        return None

    for chip in ("coretemp", "k10temp", "cpu_thermal", "acpitz"):
        for reading in readings.get(chip, []):
            if reading.current is not None:
                return reading.current

    for chip_readings in readings.values():
        for reading in chip_readings:
            if reading.current is not None:
                return reading.current

    return None


def get_host_stats(disk_path: Optional[str] = None) -> HostStats:
    """Get current host resource usage.

    Args:
        disk_path: Mount point or path whose filesystem is reported. Falls back
            to the root filesystem when it does not exist.

    Returns:
        HostStats with rounded percentages.
    """
    cpu_percent = psutil.cpu_percent(interval=0.1)
    memory = psutil.virtual_memory()

    path = Path(disk_path) if disk_path else Path("/")
    if not path.exists():
        logger.warning("stats_disk_path_missing", path=str(path))
        path = Path("/")

    try:
        disk_percent = psutil.disk_usage(str(path)).percent
    except OSError as e:
        logger.warning("disk_usage_check_failed", path=str(path), error=str(e))
        disk_percent = 0.0

    temperature = _read_temperature()

    return HostStats(
        cpu=round(cpu_percent),
        ram=round(memory.percent),
        disk=round(disk_percent),
        temp=round(temperature) if temperature is not None else DEFAULT_TEMPERATURE,
    )
