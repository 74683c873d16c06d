"""Structured logging with request id propagation.

structlog renders both its own events and records from stdlib loggers
(uvicorn, httpx) so the whole process writes one format.
"""

import contextvars
import logging
import sys
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)

REQUEST_ID_HEADER = "X-Request-ID"

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_request_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor adding the current request id, when there is one."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_request_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    shared = _shared_processors()

    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
        final: List[Any] = [structlog.processors.format_exc_info, renderer]
    else:
        # Console format for development; renders exceptions itself
        final = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for the current context, generating one if needed."""
    if not request_id:
        request_id = f"req_{uuid4().hex[:12]}"
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def clear_request_id() -> None:
    request_id_var.set(None)
