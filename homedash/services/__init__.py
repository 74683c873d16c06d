"""Service layer implementations."""

from homedash.services.event_bus import (
    EventBus,
    Subscription,
    configure_event_bus,
    get_event_bus,
)
from homedash.services.job_controller import (
    JobController,
    RejectReason,
    StartResult,
    configure_job_controller,
    get_job_controller,
)
from homedash.services.service_registry import (
    Service,
    ServiceRegistry,
    configure_service_registry,
    get_service_registry,
)

__all__ = [
    # Event bus
    "EventBus",
    "Subscription",
    "configure_event_bus",
    "get_event_bus",
    # Job controller
    "JobController",
    "RejectReason",
    "StartResult",
    "configure_job_controller",
    "get_job_controller",
    # Service registry
    "Service",
    "ServiceRegistry",
    "configure_service_registry",
    "get_service_registry",
]
