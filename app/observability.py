import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_path(request: Request) -> str:
    # Use the route template so path parameters do not explode label cardinality.
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            elapsed = time.perf_counter() - started
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, status).inc()
            REQUEST_LATENCY.labels(request.method, path, status).observe(elapsed)
            if status.startswith("5"):
                REQUEST_ERRORS.labels(request.method, path, status).inc()
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            status,
            elapsed * 1000,
            extra={"request_id": request_id},
        )
        return response
