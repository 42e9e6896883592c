"""Binds request_id for the duration of a request and logs one access line.

The ContextVars themselves live in app.core.logging, next to the filter
that copies them onto records; they are re-exported here because the
middleware and the identity dependency are the places that set them.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import _RequestContextFilter, actor_var, request_id_var

__all__ = ["RequestContextMiddleware", "_RequestContextFilter", "actor_var", "request_id_var"]

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied ids end up in log lines; anything else is replaced.
_ACCEPTABLE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER)
    if supplied and _ACCEPTABLE_REQUEST_ID.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Sets the request id, logs method/path/status/latency once the
    response is ready, and echoes the id in the X-Request-ID header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _incoming_request_id(request)
        request_id_var.set(req_id)
        actor_var.set("-")

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        path = request.url.path
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        response.headers[REQUEST_ID_HEADER] = req_id
        return response
