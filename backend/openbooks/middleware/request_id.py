"""
OpenBooks Backend — Request ID Middleware
=========================================

What:  Assigns a short id to each request and returns it in X-Request-ID.
How:   A client-supplied X-Request-ID is reused when it is a plain token
       (letters, digits, '-', '_', '.', at most 64 chars); anything else is
       replaced by the first 8 characters of a UUID4. The id lives in a
       ContextVar so exception handlers, the readiness gate and the access
       log can include it.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")

# Coroutine-local: concurrent requests on the same loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


def resolve_request_id(supplied: Optional[str]) -> str:
    """The client's id when it is safe to echo into logs and headers, else a fresh one."""
    if supplied and VALID_REQUEST_ID.fullmatch(supplied):
        return supplied
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request and response with a correlation id."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
