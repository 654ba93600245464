"""
OpenBooks Backend — Post Routes
===============================

What:  Feed reads, uploads and the like / rate / comment interactions.
How:   Thin handlers: every rule (roles, limits, rating range) lives in
       PhotoStore; the upload handler only moves bytes to the uploader.

Routes:
    GET  /api/posts                   → feed, newest first
    GET  /api/posts/{id}              → one post summary
    POST /api/posts                   → multipart upload (creator/admin), 201
    POST /api/posts/{id}/like         → toggle the active user's like
    POST /api/posts/{id}/rate         → {rating: 1-5}
    POST /api/posts/{id}/comments     → {text}

Upload Flow:
    1. store.ensure_can_upload()  (403 before any bytes are stored)
    2. uploader.upload()          (size / type checks, then disk or blob)
    3. store.create_post()        (metadata normalization, persist)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from openbooks.dependencies import get_store, get_uploader
from openbooks.exceptions import ValidationError
from openbooks.schemas.post import (
    CommentRequest,
    ErrorResponse,
    PostDraft,
    PostSummary,
    RateRequest,
)
from openbooks.services.blob_service import BlobUploader
from openbooks.services.photo_store import PhotoStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["Posts"])

NOT_FOUND = {404: {"description": "Post not found", "model": ErrorResponse}}


@router.get("", response_model=List[PostSummary], summary="List posts, newest first")
async def list_posts(store: PhotoStore = Depends(get_store)) -> List[PostSummary]:
    return store.list_posts()


@router.get(
    "/{post_id}",
    response_model=PostSummary,
    responses=NOT_FOUND,
    summary="Get one post",
)
async def get_post(post_id: str, store: PhotoStore = Depends(get_store)) -> PostSummary:
    return store.get_post(post_id)


@router.post(
    "",
    status_code=201,
    response_model=PostSummary,
    responses={
        400: {"description": "Missing, empty, oversized or non-image file", "model": ErrorResponse},
        403: {"description": "Creator/Admin only", "model": ErrorResponse},
    },
    summary="Upload an image post",
    description=(
        "Multipart form: `image` file plus optional title, caption, location, "
        "and comma-separated people (max 10) and tags (max 12)."
    ),
)
async def create_post(
    image: Optional[UploadFile] = File(default=None),
    title: Optional[str] = Form(default=None),
    caption: Optional[str] = Form(default=None),
    location: Optional[str] = Form(default=None),
    people: Optional[str] = Form(default=None),
    tags: Optional[str] = Form(default=None),
    store: PhotoStore = Depends(get_store),
    uploader: BlobUploader = Depends(get_uploader),
) -> PostSummary:
    store.ensure_can_upload()
    if image is None:
        raise ValidationError(message="image file is required", field="image")

    try:
        content = await image.read()
        logger.info(
            "Received upload: filename=%s, size=%d bytes",
            image.filename or "unknown",
            len(content),
        )
        image_url = await uploader.upload(
            image.filename or "upload",
            content,
            image.content_type,
        )
    finally:
        await image.close()

    draft = PostDraft(
        title=title,
        caption=caption,
        location=location,
        people=people,
        tags=tags,
    )
    return await store.create_post(draft, image_url)


@router.post(
    "/{post_id}/like",
    response_model=PostSummary,
    responses=NOT_FOUND,
    summary="Toggle like",
)
async def toggle_like(post_id: str, store: PhotoStore = Depends(get_store)) -> PostSummary:
    return await store.toggle_like(post_id)


@router.post(
    "/{post_id}/rate",
    response_model=PostSummary,
    responses={**NOT_FOUND, 400: {"description": "rating must be 1-5", "model": ErrorResponse}},
    summary="Rate a post",
)
async def rate_post(
    post_id: str,
    body: Optional[RateRequest] = None,
    store: PhotoStore = Depends(get_store),
) -> PostSummary:
    return await store.rate_post(post_id, body.rating if body else None)


@router.post(
    "/{post_id}/comments",
    response_model=PostSummary,
    responses={**NOT_FOUND, 400: {"description": "text is required", "model": ErrorResponse}},
    summary="Comment on a post",
)
async def add_comment(
    post_id: str,
    body: Optional[CommentRequest] = None,
    store: PhotoStore = Depends(get_store),
) -> PostSummary:
    return await store.add_comment(post_id, body.text if body else None)
