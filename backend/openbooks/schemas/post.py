"""
OpenBooks Backend — Pydantic Request/Response Schemas
=====================================================

What:  API contracts between the route layer and its clients.
How:   FastAPI validates request bodies against the *Request models and
       serializes responses from the response models (by alias, so comment
       records keep their persisted "postId" field name).

Schemas are separate from the entity records in openbooks.models: a
PostSummary is a projection (post + aggregated counters), never stored.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from openbooks.models.entities import Comment, Post


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PostSummary(Post):
    """
    What:  A post enriched with like/rating/comment aggregates for one viewer.
    Who:   Returned by every post read and by like/rate/comment mutations.

    Viewer-specific fields:
        liked_by_me, my_rating — computed against the active user.
    """

    like_count: int = 0
    liked_by_me: bool = False
    rating_avg: float = 0
    rating_count: int = 0
    my_rating: Union[int, float] = 0
    comment_count: int = 0
    comments: List[Comment] = Field(default_factory=list)


class OkResponse(BaseModel):
    ok: bool = True


class PostStatusResponse(OkResponse):
    status: str


class ServiceState(BaseModel):
    name: str
    state: str
    dot: str = ""
    note: Optional[str] = None


class StatusResponse(BaseModel):
    """
    What:  Deployment summary shown on the admin dashboard.
    Who:   Returned by GET /api/status.
    """

    users: int
    posts: int
    db_provider: str
    db_size_bytes: int
    db_size_human: str
    services: List[ServiceState]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════
# Fields are optional at the schema level: PhotoStore reports missing values
# as ValidationError (400) with its own messages.


class SwitchUserRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = {"populate_by_name": True}


class ProfileRequest(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None


class RateRequest(BaseModel):
    rating: Any = None


class CommentRequest(BaseModel):
    text: Optional[str] = None


class PostDraft(BaseModel):
    """
    What:  Metadata fields of an upload, before normalization.
    How:   people/tags arrive as comma-separated form fields; lists are
           accepted too when the store is called directly.
    """

    title: Optional[str] = None
    caption: Optional[str] = None
    location: Optional[str] = None
    people: Union[str, List[str], None] = None
    tags: Union[str, List[str], None] = None


# ══════════════════════════════════════════════════════════════════════════
# Error Response Model
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "rating must be 1-5",
            "details": {"field": "rating"},
            "request_id": "1f2e3d4c"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None)
    request_id: Optional[str] = Field(default=None)


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, or starting while the store loads")
    version: str
    database: str = Field(description="Configured DB provider")
    store_ready: bool
    uptime_seconds: float
