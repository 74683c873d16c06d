"""Error envelope shared by every HTTP route.

Domain exceptions from the sandbox, indexer and service registry carry no HTTP
knowledge; they are translated here into an ErrorCode, a status and a JSON
body of the ErrorDetail shape.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from homedash.core.exceptions import (
    AccessDeniedError,
    ConsoleError,
    InvalidInputError,
    InvalidPathError,
    NotFoundError,
    RetrievalError,
    ServiceExistsError,
    ServiceNotFoundError,
    UnconfiguredError,
)
from homedash.core.logging import get_request_id

logger = structlog.get_logger(__name__)

HTTP_422_UNPROCESSABLE = 422


class ErrorCode:
    """Machine-readable values of the ``error_code`` field."""

    # Client Errors (4xx)
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PATH = "INVALID_PATH"
    INVALID_TARGET = "INVALID_TARGET"
    AUTH_FAILED = "AUTH_FAILED"
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    JOB_ALREADY_RUNNING = "JOB_ALREADY_RUNNING"
    SERVICE_EXISTS = "SERVICE_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Server Errors (5xx)
    UNCONFIGURED = "UNCONFIGURED"
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    COMPONENT_UNAVAILABLE = "COMPONENT_UNAVAILABLE"


ERROR_CODE_TO_STATUS: Dict[str, int] = {
    # 400 Bad Request
    ErrorCode.INVALID_INPUT: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_PATH: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TARGET: HTTP_400_BAD_REQUEST,
    # 401 Unauthorized
    ErrorCode.AUTH_FAILED: HTTP_401_UNAUTHORIZED,
    # 403 Forbidden
    ErrorCode.ACCESS_DENIED: HTTP_403_FORBIDDEN,
    # 404 Not Found
    ErrorCode.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.SERVICE_NOT_FOUND: HTTP_404_NOT_FOUND,
    # 409 Conflict
    ErrorCode.JOB_ALREADY_RUNNING: HTTP_409_CONFLICT,
    ErrorCode.SERVICE_EXISTS: HTTP_409_CONFLICT,
    # 422 Unprocessable Entity
    ErrorCode.VALIDATION_ERROR: HTTP_422_UNPROCESSABLE,
    # 500 Internal Server Error
    ErrorCode.UNCONFIGURED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.RETRIEVAL_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    # 503 Service Unavailable
    ErrorCode.COMPONENT_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
}


ERROR_SUGGESTIONS: Dict[str, str] = {
    ErrorCode.INVALID_INPUT: "Check the request fields against the API documentation at /docs",
    ErrorCode.INVALID_PATH: "Provide a path relative to the root in the 'path' parameter",
    ErrorCode.INVALID_TARGET: (
        "Use an open.spotify.com playlist, track or album URL "
        "(e.g. https://open.spotify.com/playlist/<id>)"
    ),
    ErrorCode.AUTH_FAILED: "Provide a valid API key in the X-API-Key header",
    ErrorCode.ACCESS_DENIED: "Paths must stay inside the configured root directory",
    ErrorCode.NOT_FOUND: "Browse the parent directory to check the name",
    ErrorCode.SERVICE_NOT_FOUND: "List services with GET /api/services to check the name",
    ErrorCode.JOB_ALREADY_RUNNING: "Wait for the job:finished event before starting another",
    ErrorCode.SERVICE_EXISTS: "Choose a different name or URL, or remove the existing service",
    ErrorCode.VALIDATION_ERROR: "Check the request body and query parameters",
    ErrorCode.UNCONFIGURED: "Set the required root directory in config.yaml or the environment",
    ErrorCode.RETRIEVAL_FAILED: "Check that the server can read the directory. See server logs",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. See server logs",
    ErrorCode.COMPONENT_UNAVAILABLE: "A required component is unavailable. Check /health",
}


# First match wins, so subclasses are listed before their bases
EXCEPTION_TO_ERROR_CODE: Dict[Type[Exception], str] = {
    InvalidPathError: ErrorCode.INVALID_PATH,
    InvalidInputError: ErrorCode.INVALID_INPUT,
    AccessDeniedError: ErrorCode.ACCESS_DENIED,
    NotFoundError: ErrorCode.NOT_FOUND,
    ServiceNotFoundError: ErrorCode.SERVICE_NOT_FOUND,
    ServiceExistsError: ErrorCode.SERVICE_EXISTS,
    UnconfiguredError: ErrorCode.UNCONFIGURED,
    RetrievalError: ErrorCode.RETRIEVAL_FAILED,
}


class APIError(Exception):
    """Error raised by route handlers with an explicit ErrorCode."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        """
        Args:
            error_code: One of the ErrorCode values.
            message: Text shown to the dashboard user.
            details: Extra context, omitted from the body when empty.
            suggestion: Overrides the per-code hint from ERROR_SUGGESTIONS.
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_SUGGESTIONS.get(error_code)
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return ERROR_CODE_TO_STATUS.get(self.error_code, HTTP_500_INTERNAL_SERVER_ERROR)


def map_exception_to_api_error(exc: Exception) -> APIError:
    """Translate a ConsoleError (or anything else) into an APIError.

    Unknown exception types become INTERNAL_ERROR without leaking their text.
    """
    for exc_type, error_code in EXCEPTION_TO_ERROR_CODE.items():
        if isinstance(exc, exc_type):
            return APIError(error_code, str(exc))
    return APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


def _build_error_response(
    error_code: str,
    message: str,
    details: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> Dict[str, Any]:
    """Body of an error response; optional keys are left out when empty."""
    request_id = get_request_id()
    timestamp = datetime.now(timezone.utc).isoformat()

    response: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": timestamp,
    }

    if details:
        response["details"] = details
    if request_id:
        response["request_id"] = request_id
    if suggestion:
        response["suggestion"] = suggestion

    return response


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any exception raised while handling ``request`` as an error response.

    Registered for APIError, ConsoleError, HTTPException, request validation
    errors and Exception. Only the last case is logged with a traceback.
    """
    headers: Optional[Dict[str, str]] = None

    if isinstance(exc, APIError):
        status_code = exc.status_code
        response = _build_error_response(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
            suggestion=exc.suggestion,
        )
        logger.warning(
            "api_error",
            error_code=exc.error_code,
            message=exc.message,
            path=request.url.path,
        )

    elif isinstance(exc, HTTPException):
        status_code = exc.status_code
        headers = getattr(exc, "headers", None)

        if isinstance(exc.detail, dict) and "error_code" in exc.detail:
            error_code = exc.detail["error_code"]
            message = exc.detail.get("message", str(exc.detail))
            details = exc.detail.get("details")
        else:
            error_code = _status_to_error_code(status_code)
            message = str(exc.detail) if exc.detail else "An error occurred"
            details = None

        response = _build_error_response(
            error_code=error_code,
            message=message,
            details=details,
            suggestion=ERROR_SUGGESTIONS.get(error_code),
        )
        logger.warning(
            "http_exception",
            status_code=status_code,
            error_code=error_code,
            path=request.url.path,
        )

    elif isinstance(exc, RequestValidationError):
        status_code = HTTP_422_UNPROCESSABLE
        response = _build_error_response(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details="; ".join(
                f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
                for err in exc.errors()
            ),
        )
        logger.warning("request_validation_error", path=request.url.path)

    elif isinstance(exc, ConsoleError):
        api_error = map_exception_to_api_error(exc)
        status_code = api_error.status_code
        response = _build_error_response(
            error_code=api_error.error_code,
            message=api_error.message,
            details=api_error.details,
            suggestion=api_error.suggestion,
        )
        # Sandbox denials are logged without the request path or query
        logger.warning(
            "console_error",
            error_code=api_error.error_code,
            error_type=type(exc).__name__,
            route=request.url.path,
        )

    else:
        status_code = HTTP_500_INTERNAL_SERVER_ERROR
        response = _build_error_response(
            error_code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
            suggestion=ERROR_SUGGESTIONS.get(ErrorCode.INTERNAL_ERROR),
        )
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

    return JSONResponse(status_code=status_code, content=response, headers=headers)


def _status_to_error_code(status_code: int) -> str:
    """Error code for an HTTPException raised without one."""
    if status_code == HTTP_400_BAD_REQUEST:
        return ErrorCode.INVALID_INPUT
    elif status_code == HTTP_401_UNAUTHORIZED:
        return ErrorCode.AUTH_FAILED
    elif status_code == HTTP_403_FORBIDDEN:
        return ErrorCode.ACCESS_DENIED
    elif status_code == HTTP_404_NOT_FOUND:
        return ErrorCode.NOT_FOUND
    elif status_code == HTTP_409_CONFLICT:
        return ErrorCode.JOB_ALREADY_RUNNING
    elif status_code == HTTP_503_SERVICE_UNAVAILABLE:
        return ErrorCode.COMPONENT_UNAVAILABLE
    else:
        return ErrorCode.INTERNAL_ERROR
