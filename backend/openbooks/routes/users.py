"""
OpenBooks Backend — User Routes
===============================

Routes:
    GET    /api/users        → all users
    POST   /api/users        → create (admin only), 201
    DELETE /api/users/{id}   → delete (admin only; the seed admin is protected)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from openbooks.dependencies import get_store
from openbooks.models.entities import User
from openbooks.schemas.post import ErrorResponse, OkResponse, ProfileRequest
from openbooks.services.photo_store import PhotoStore

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=List[User], summary="List users")
async def list_users(store: PhotoStore = Depends(get_store)) -> List[User]:
    return store.list_users()


@router.post(
    "",
    status_code=201,
    response_model=User,
    responses={
        400: {"description": "Missing name or invalid role", "model": ErrorResponse},
        403: {"description": "Admin only", "model": ErrorResponse},
    },
    summary="Create a user",
)
async def create_user(
    body: Optional[ProfileRequest] = None,
    store: PhotoStore = Depends(get_store),
) -> User:
    body = body or ProfileRequest()
    return await store.create_user(body.name, body.role)


@router.delete(
    "/{user_id}",
    response_model=OkResponse,
    responses={
        400: {"description": "Seed admin cannot be deleted", "model": ErrorResponse},
        403: {"description": "Admin only", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Delete a user",
)
async def delete_user(user_id: str, store: PhotoStore = Depends(get_store)) -> OkResponse:
    await store.delete_user(user_id)
    return OkResponse()
