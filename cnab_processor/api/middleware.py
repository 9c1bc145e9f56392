"""FastAPI middleware for request tracing and metrics"""

import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from cnab_processor.infrastructure.observability.metrics import request_duration_histogram

UNMATCHED_ENDPOINT = "unmatched"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to each request, reusing the caller's X-Request-ID when sent"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def endpoint_label(request: Request) -> str:
    """Full route template for a matched request, a constant otherwise"""
    route = request.scope.get("route")
    if route is None:
        return UNMATCHED_ENDPOINT

    # Path params never contain "/", so leading segments the template lacks are the router prefix
    path_segments = request.scope.get("path", "").split("/")
    prefix_length = len(path_segments) - route.path.count("/")
    return "/".join(path_segments[:prefix_length]) + route.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics, labelled by route template to keep cardinality bounded"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint_label(request),
            status=response.status_code,
        ).observe(duration)

        return response
