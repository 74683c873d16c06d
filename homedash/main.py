"""FastAPI application for the home server dashboard.

Services are built in the lifespan from the loaded config and bound to the
routers through dependency overrides.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from homedash import __version__
from homedash.api import events, files, health, jobs, media, metrics, services, stats
from homedash.core.config import (
    Config,
    ConfigService,
    MonitoringConfig,
    SecurityConfig,
    StorageConfig,
)
from homedash.core.errors import APIError, global_exception_handler
from homedash.core.exceptions import ConsoleError
from homedash.core.logging import configure_logging
from homedash.core.metrics import initialize_metrics
from homedash.middleware.auth import configure_auth
from homedash.middleware.request_context import RequestContextMiddleware
from homedash.services.event_bus import configure_event_bus, get_event_bus
from homedash.services.job_controller import configure_job_controller, get_job_controller
from homedash.services.service_registry import configure_service_registry, get_service_registry

logger = structlog.get_logger(__name__)

# Global configuration (loaded at startup)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the loaded application configuration."""
    if _config is None:
        raise RuntimeError("Configuration not loaded")
    return _config


def get_storage_config() -> StorageConfig:
    return get_config().storage


def get_monitoring_config() -> MonitoringConfig:
    return get_config().monitoring


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build services on startup; stop the job and close subscribers on shutdown."""
    global _config

    logger.info("Application starting", version=__version__)

    initialize_metrics(__version__)
    health.reset_start_time()

    config = ConfigService().load()
    _config = config

    configure_logging(config.logging.level, config.logging.format)

    logger.info(
        "Configuration loaded",
        server_port=config.server.port,
        browser_root=config.storage.browser_root,
        media_root=config.storage.media_root,
    )
    if not config.storage.browser_root:
        logger.warning("browser_root_unset", hint="set APP_STORAGE_BROWSER_ROOT")
    if not config.storage.media_root:
        logger.warning("media_root_unset", hint="set APP_STORAGE_MEDIA_ROOT")

    configure_auth(api_keys=config.security.api_keys)

    event_bus = configure_event_bus(max_queue_size=config.jobs.subscriber_queue_size)

    controller = configure_job_controller(
        event_bus=event_bus,
        output_root=config.storage.media_root,
        command=config.jobs.command,
        timeout_seconds=config.jobs.timeout_seconds,
    )
    logger.info(
        "Job controller configured",
        command=controller.command,
        timeout_seconds=config.jobs.timeout_seconds,
    )

    registry = configure_service_registry(
        registry_path=config.storage.registry_path,
        check_timeout=config.monitoring.status_check_timeout,
        cache_ttl=config.monitoring.status_cache_ttl,
    )

    logger.info("Application startup complete", version=__version__)

    yield

    logger.info("Application shutting down")

    await controller.shutdown()
    event_bus.close()
    await registry.aclose()

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers."""
    app = FastAPI(
        title="Homedash",
        description="Home server console: music downloads, files, media library and services",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Default ["*"] for development; override via APP_SECURITY_CORS_ORIGINS env var
    security_config = SecurityConfig()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=security_config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(APIError, global_exception_handler)
    app.add_exception_handler(ConsoleError, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)

    # Routers declare placeholder dependencies
    app.dependency_overrides[jobs.get_job_controller] = get_job_controller
    app.dependency_overrides[events.get_event_bus] = get_event_bus
    app.dependency_overrides[files.get_storage_config] = get_storage_config
    app.dependency_overrides[stats.get_monitoring_config] = get_monitoring_config
    app.dependency_overrides[services.get_service_registry] = get_service_registry

    # Register routers
    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(events.router)
    app.include_router(files.router)
    app.include_router(media.router)
    app.include_router(stats.router)
    app.include_router(services.router)
    if MonitoringConfig().metrics_enabled:
        app.include_router(metrics.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    server_config = ConfigService().load().server
    uvicorn.run(app, host=server_config.host, port=server_config.port)
