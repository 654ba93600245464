"""
OpenBooks Backend — Request Logging Middleware
==============================================

What:  One access-log line per request: method, path, status, duration,
       request id, the demo's active user and client address.
How:   Log level follows the status code (5xx → ERROR, 4xx → WARNING,
       otherwise INFO). Bodies are never logged; uploads can be megabytes.
       The active user is read after the handler ran, so a switch shows the
       user it switched to. While the store is still loading it is logged
       as "-" (the request was answered by the readiness gate).
When:  Runs inside RequestIDMiddleware so the request id is already set.

Example:
    POST /api/posts/3f2a/like 200 4.1ms [1f2e3d4c] user=u_consumer from 127.0.0.1

Typical durations:
    GET /api/posts           a few ms (in-memory projection)
    POST /api/posts/{id}/*   dominated by the save (disk write or Cosmos round trips)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from openbooks.middleware.request_id import request_id_var

logger = logging.getLogger("openbooks.access")

SKIPPED_PATHS = {"/health"}


def _active_user_id(request: Request) -> str:
    store = getattr(request.app.state, "store", None)
    if store is None or not store.ready:
        return "-"
    return store.aggregate.active_user_id


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for every request except health probes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        user_id = _active_user_id(request)
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "active_user": user_id,
                "client_ip": client_ip,
            },
        )

        return response
