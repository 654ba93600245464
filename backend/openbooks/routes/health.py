"""
OpenBooks Backend — Health & Status Routes
==========================================

What:  Liveness probe and the admin dashboard's deployment summary.

    GET /health      → always 200; reports whether the store has loaded.
                       Exempt from the readiness gate so probes never hang.
    GET /api/status  → user/post counts, backend provider and size.
"""

import time

from fastapi import APIRouter, Depends

from openbooks import __version__
from openbooks.dependencies import get_store
from openbooks.schemas.post import HealthResponse, StatusResponse
from openbooks.services.photo_store import PhotoStore

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(store: PhotoStore = Depends(get_store)) -> HealthResponse:
    return HealthResponse(
        status="healthy" if store.ready else "starting",
        version=__version__,
        database=store.backend.provider,
        store_ready=store.ready,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get("/api/status", response_model=StatusResponse, summary="Deployment status")
async def status(store: PhotoStore = Depends(get_store)) -> StatusResponse:
    return StatusResponse(**(await store.status()))
