"""HTTP request metrics.

Series are labelled by the route template the request matched, e.g.
`/v1/watch-progress/{asset_id}`, so per-asset paths collapse into one
series. Requests that hit no route share the label "unmatched".
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

UNMATCHED = "unmatched"
_SKIPPED_PATHS = frozenset({"/metrics"})


def route_template(request: Request) -> str:
    # Starlette stores the matched route in scope once routing has run.
    return getattr(request.scope.get("route"), "path", None) or UNMATCHED


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIPPED_PATHS:
            return await call_next(request)

        status = "500"
        started = time.perf_counter()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
                status = str(response.status_code)
            finally:
                template = route_template(request)
                REQUEST_DURATION.labels(request.method, template).observe(
                    time.perf_counter() - started
                )
                REQUEST_COUNT.labels(request.method, template, status).inc()
        return response
