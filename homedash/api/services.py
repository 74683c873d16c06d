"""Service registry endpoints.

- GET /api/services
- POST /api/services
- DELETE /api/services/{name}
"""

from typing import Any, List

import structlog
from fastapi import APIRouter, Depends, status

from homedash.api.schemas import ErrorDetail, MessageResponse, ServiceCreate, ServiceResponse
from homedash.core.errors import APIError, ErrorCode
from homedash.core.validation import service_url_validator
from homedash.middleware.auth import require_api_key
from homedash.services.service_registry import DEFAULT_CATEGORY, Service, ServiceRegistry

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["services"], dependencies=[Depends(require_api_key)])


# Dependency placeholder (to be configured in main app)
async def get_service_registry() -> ServiceRegistry:
    """Get service registry instance."""
    raise NotImplementedError("Service registry dependency not configured")


@router.get("/services", response_model=List[ServiceResponse])
async def list_services(
    registry: ServiceRegistry = Depends(get_service_registry),  # noqa: B008
) -> Any:
    """All registered services with their current reachability."""
    return await registry.list_with_status()


@router.post(
    "/services",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorDetail, "description": "Missing field or invalid URL"},
        409: {"model": ErrorDetail, "description": "Name or URL already registered"},
    },
)
async def add_service(
    request: ServiceCreate,
    registry: ServiceRegistry = Depends(get_service_registry),  # noqa: B008
) -> Any:
    """Register a new service card."""
    if request.url:
        validation = service_url_validator.validate(request.url)
        if not validation.is_valid:
            raise APIError(ErrorCode.INVALID_INPUT, validation.error_message or "Invalid URL")
        url = validation.sanitized_value
    else:
        url = request.url

    service = Service(
        name=(request.name or "").strip(),
        url=url or "",
        icon=(request.icon or "").strip(),
        description=request.description,
        category=request.category or DEFAULT_CATEGORY,
    )
    return await registry.add(service)


@router.delete(
    "/services/{name}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorDetail, "description": "Service not found"}},
)
async def remove_service(
    name: str,
    registry: ServiceRegistry = Depends(get_service_registry),  # noqa: B008
) -> Any:
    """Remove a service by name."""
    await registry.remove(name)
    return MessageResponse(message="Service removed.")
