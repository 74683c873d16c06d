"""Registry of self-hosted services shown on the dashboard.

Services are stored as a JSON array on disk. Reachability is not stored; it
is probed with an HTTP HEAD request when services are listed and cached for a
short TTL so a dashboard refresh does not hammer every service.
"""

import asyncio
import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import httpx
import structlog
from cachetools import TTLCache

from homedash.core.exceptions import (
    InvalidInputError,
    RetrievalError,
    ServiceExistsError,
    ServiceNotFoundError,
)

logger = structlog.get_logger(__name__)

ServiceStatus = Literal["online", "offline"]

DEFAULT_CATEGORY = "Uncategorized"


@dataclass
class Service:
    """A service card."""

    name: str
    url: str
    icon: str
    description: str = ""
    category: str = DEFAULT_CATEGORY

    def to_dict(self, status: Optional[ServiceStatus] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = asdict(self)
        if status is not None:
            result["status"] = status
        return result


class ServiceRegistry:
    """JSON-file backed CRUD for service cards with cached status probes."""

    def __init__(
        self,
        registry_path: str,
        check_timeout: float = 5.0,
        cache_ttl: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            registry_path: Path of the JSON file holding the services.
            check_timeout: Timeout of a status probe in seconds.
            cache_ttl: Seconds a probe result is reused.
            client: HTTP client for probes (one is created if None).
        """
        self.registry_path = Path(registry_path)
        self.check_timeout = check_timeout
        self.status_cache: TTLCache = TTLCache(maxsize=256, ttl=cache_ttl)
        self._client = client
        self._owns_client = client is None
        self._lock = asyncio.Lock()

        logger.debug(
            "service_registry_initialized",
            registry_path=str(self.registry_path),
            cache_ttl=cache_ttl,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Self-hosted services commonly use self-signed certificates
            self._client = httpx.AsyncClient(
                verify=False,  # nosec B501
                timeout=self.check_timeout,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def load(self) -> List[Service]:
        """Read all services. A missing file is an empty registry.

        Raises:
            RetrievalError: If the file cannot be read or parsed.
        """
        try:
            raw = self.registry_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise RetrievalError(f"Failed to read service registry: {e.strerror}") from e

        try:
            data = json.loads(raw) if raw.strip() else []
            return [
                Service(
                    name=item["name"],
                    url=item["url"],
                    icon=item.get("icon", ""),
                    description=item.get("description", ""),
                    category=item.get("category") or DEFAULT_CATEGORY,
                )
                for item in data
            ]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("service_registry_corrupt", path=str(self.registry_path), error=str(e))
            raise RetrievalError("Service registry file is corrupt") from e

    def save(self, services: List[Service]) -> None:
        """Atomically write all services."""
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([asdict(s) for s in services], indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.registry_path.parent), prefix=".services-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.registry_path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise RetrievalError(f"Failed to write service registry: {e.strerror}") from e

    # ------------------------------------------------------------------
    # Status probes
    # ------------------------------------------------------------------

    async def check_status(self, url: str) -> ServiceStatus:
        """Probe a service URL; any response counts as online."""
        cached = self.status_cache.get(url)
        if cached is not None:
            return cached

        status: ServiceStatus
        try:
            await self.client.head(url)
            status = "online"
        except httpx.HTTPError as e:
            # Certificate errors, timeouts and refused connections are all offline
            logger.debug("service_status_offline", url=url, error=type(e).__name__)
            status = "offline"

        self.status_cache[url] = status
        return status

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def list_with_status(self) -> List[Dict[str, Any]]:
        """All services with a fresh (or cached) status."""
        services = self.load()
        statuses = await asyncio.gather(*(self.check_status(s.url) for s in services))
        return [s.to_dict(status) for s, status in zip(services, statuses)]

    async def add(self, service: Service) -> Dict[str, Any]:
        """Register a new service.

        Raises:
            InvalidInputError: If a required field is missing.
            ServiceExistsError: If the URL or the name (case-insensitive) is taken.
        """
        if not service.name or not service.url or not service.icon:
            raise InvalidInputError("Missing required fields: name, url, icon.")

        async with self._lock:
            services = self.load()

            if any(s.url == service.url for s in services):
                raise ServiceExistsError("Service with this URL already exists.")

            if any(s.name.lower() == service.name.lower() for s in services):
                raise ServiceExistsError("A service with this name already exists.")

            services.append(service)
            self.save(services)

        logger.info("service_added", name=service.name, url=service.url)

        status = await self.check_status(service.url)
        return service.to_dict(status)

    async def remove(self, name: str) -> None:
        """Delete a service by exact name.

        Raises:
            ServiceNotFoundError: If no service has that name.
        """
        async with self._lock:
            services = self.load()
            remaining = [s for s in services if s.name != name]

            if len(remaining) == len(services):
                raise ServiceNotFoundError("Service not found.")

            self.save(remaining)

        logger.info("service_removed", name=name)


# Global registry instance
_service_registry: Optional[ServiceRegistry] = None


def configure_service_registry(
    registry_path: str,
    check_timeout: float = 5.0,
    cache_ttl: int = 30,
) -> ServiceRegistry:
    """Configure and initialize the global service registry."""
    global _service_registry
    _service_registry = ServiceRegistry(
        registry_path=registry_path,
        check_timeout=check_timeout,
        cache_ttl=cache_ttl,
    )
    return _service_registry


def get_service_registry() -> ServiceRegistry:
    """Get the global service registry instance.

    Raises:
        RuntimeError: If the registry is not configured.
    """
    if _service_registry is None:
        raise RuntimeError(
            "Service registry not configured. Call configure_service_registry() first."
        )
    return _service_registry
