"""FastAPI middleware for request tracing, write auditing and latency metrics"""

import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from installment_engine.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def route_template(request: Request) -> str:
    """Matched route path (/v1/plans/{plan_id}) so labels never carry entity IDs"""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Propagate the caller's request ID (or mint one) and audit every write.

    Plan writes and sweep triggers are logged with their outcome so the audit
    collaborator can follow them by request ID.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if request.method in WRITE_METHODS:
            logging.info(
                "Write request handled",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "route": route_template(request),
                    "path": request.url.path,
                    "status": response.status_code,
                },
            )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request latency per route template"""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=route_template(request),
            status=response.status_code,
        ).observe(time.perf_counter() - started)
        return response
