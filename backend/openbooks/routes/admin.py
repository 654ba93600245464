"""
OpenBooks Backend — Admin Routes
================================

Routes (all admin only):
    POST   /api/admin/reset              → reseed the whole aggregate
    POST   /api/admin/posts/{id}/status  → toggle published / hidden
    DELETE /api/admin/posts/{id}         → delete post with its likes, ratings, comments
    GET    /api/admin/export             → full aggregate document
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from openbooks.dependencies import get_store
from openbooks.schemas.post import ErrorResponse, OkResponse, PostStatusResponse
from openbooks.services.photo_store import PhotoStore

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    responses={403: {"description": "Admin only", "model": ErrorResponse}},
)


@router.post("/reset", response_model=OkResponse, summary="Reset to seed data")
async def reset(store: PhotoStore = Depends(get_store)) -> OkResponse:
    await store.reset()
    return OkResponse()


@router.post(
    "/posts/{post_id}/status",
    response_model=PostStatusResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Toggle post visibility",
)
async def toggle_status(
    post_id: str, store: PhotoStore = Depends(get_store)
) -> PostStatusResponse:
    status = await store.toggle_post_status(post_id)
    return PostStatusResponse(status=status)


@router.delete(
    "/posts/{post_id}",
    response_model=OkResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Delete a post",
)
async def delete_post(post_id: str, store: PhotoStore = Depends(get_store)) -> OkResponse:
    await store.delete_post(post_id)
    return OkResponse()


@router.get("/export", summary="Export the full aggregate")
async def export(store: PhotoStore = Depends(get_store)) -> Dict[str, Any]:
    return store.export()
