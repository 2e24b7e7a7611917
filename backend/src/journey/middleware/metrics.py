"""Prometheus request metrics."""
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

journey_request_duration_seconds = Histogram(
    "journey_request_duration_seconds",
    "API request duration in seconds",
    labelnames=["method", "route", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0],
)

journey_requests_total = Counter(
    "journey_requests_total",
    "Total API requests",
    labelnames=["method", "route", "status_code"],
)

journey_request_errors_total = Counter(
    "journey_request_errors_total",
    "Requests that raised instead of returning a response",
    labelnames=["method", "route", "error_type"],
)


def route_label(request: Request) -> str:
    """Route template (``/v1/email-templates/{template_id}``) rather than the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records duration, count and error metrics per route."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            journey_request_errors_total.labels(
                method=request.method,
                route=route_label(request),
                error_type=type(exc).__name__,
            ).inc()
            raise

        route = route_label(request)
        journey_request_duration_seconds.labels(
            method=request.method,
            route=route,
            status_code=response.status_code,
        ).observe(time.perf_counter() - start_time)
        journey_requests_total.labels(
            method=request.method,
            route=route,
            status_code=response.status_code,
        ).inc()
        return response
