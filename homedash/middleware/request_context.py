"""Request id propagation and request metrics."""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from homedash.core.logging import REQUEST_ID_HEADER, clear_request_id, set_request_id
from homedash.core.metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the logging context and record request metrics.

    The id comes from the ``X-Request-ID`` header when the client sends one
    and is echoed back on the response. Metrics use the FastAPI route
    template as endpoint label to keep cardinality bounded.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            # Unhandled errors are rendered by the outermost error middleware
            self._record(request, 500, start_time)
            raise
        finally:
            clear_request_id()

        self._record(request, response.status_code, start_time)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @staticmethod
    def _record(request: Request, status: int, start_time: float) -> None:
        route = request.scope.get("route")
        MetricsCollector.record_request(
            method=request.method,
            endpoint=route.path if route else "/unmatched",
            status=status,
            duration=time.time() - start_time,
        )
