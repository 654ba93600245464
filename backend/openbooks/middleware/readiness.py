"""
OpenBooks Backend — Store Readiness Middleware
==============================================

What:  Holds requests that arrive while the aggregate is still loading.
How:   Polls `store.ready` up to `attempts` times, sleeping `interval`
       seconds between polls (default 50 × 20ms ≈ 1s). If the store is still
       not ready, answers 503 without reaching any route.
Who:   Applied to every request except health checks and API docs.

The loop only waits; it never serializes requests once the store is ready.
"""

import asyncio
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from openbooks.config import settings
from openbooks.exceptions import StoreNotReadyError
from openbooks.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class StoreReadyMiddleware(BaseHTTPMiddleware):
    """Bounded wait-and-retry gate in front of the PhotoStore."""

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(
        self,
        app,
        attempts: Optional[int] = None,
        interval: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.attempts = settings.ready_wait_attempts if attempts is None else attempts
        self.interval = settings.ready_wait_interval if interval is None else interval

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        store = request.app.state.store
        tries = 0
        while not store.ready and tries < self.attempts:
            await asyncio.sleep(self.interval)
            tries += 1

        if not store.ready:
            exc = StoreNotReadyError()
            rid = request_id_var.get("")
            logger.warning("[%s] Rejected %s: store not ready", rid, request.url.path)
            return JSONResponse(
                status_code=503,
                content={
                    "error": "store_not_ready",
                    "message": exc.message,
                    "request_id": rid,
                },
                headers={"Retry-After": "1"},
            )

        return await call_next(request)
