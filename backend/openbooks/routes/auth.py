"""
OpenBooks Backend — Active User Routes
======================================

What:  The demo "session": read, switch and edit the single active user.
How:   No credentials. The active user id is part of the persisted aggregate,
       so a switch survives restarts.

Routes:
    GET  /api/auth/me       → current active user
    POST /api/auth/switch   → {userId}
    POST /api/auth/update   → {name, role}
"""

from typing import Optional

from fastapi import APIRouter, Depends

from openbooks.dependencies import get_store
from openbooks.models.entities import User
from openbooks.schemas.post import ErrorResponse, ProfileRequest, SwitchUserRequest
from openbooks.services.photo_store import PhotoStore

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/me", response_model=User, summary="Get the active user")
async def me(store: PhotoStore = Depends(get_store)) -> User:
    return store.active_user()


@router.post(
    "/switch",
    response_model=User,
    responses={
        400: {"description": "userId missing", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Make another user the active user",
)
async def switch_user(
    body: Optional[SwitchUserRequest] = None,
    store: PhotoStore = Depends(get_store),
) -> User:
    return await store.switch_active_user(body.user_id if body else None)


@router.post(
    "/update",
    response_model=User,
    responses={400: {"description": "Missing name/role or invalid role", "model": ErrorResponse}},
    summary="Rename the active user or change their role",
)
async def update_profile(
    body: Optional[ProfileRequest] = None,
    store: PhotoStore = Depends(get_store),
) -> User:
    body = body or ProfileRequest()
    return await store.update_active_profile(body.name, body.role)
