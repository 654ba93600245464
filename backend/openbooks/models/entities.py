"""
OpenBooks Backend — Entity Records
==================================

What:  Pydantic models for every persisted entity plus the aggregate root.
How:   Attributes are snake_case; aliases keep the persisted field names
       (postId, userId, activeUserId) identical across both backends.
Who:   PhotoStore, the projection, the seed procedure and both storage
       backends.

Persisted document (file backend):
    {
        "activeUserId": "u_consumer",
        "users":    [{id, name, role}, ...],
        "posts":    [{id, title, image_url, creator_name, caption, location,
                      people, tags, created_at, status}, ...],
        "likes":    [{postId, userId, at}, ...],
        "ratings":  [{postId, userId, rating, at}, ...],
        "comments": [{id, postId, who, text, at}, ...]
    }

Partitioned backend:
    Each record above is an independent item with an extra "type" field
    (user | post | like | rating | comment), plus one meta item
    {"id": "meta", "type": "meta", "activeUserId": ...}.
"""

from typing import Any, Dict, List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# ── Enumerations ──────────────────────────────────────────────────────────
ROLES = ("consumer", "creator", "admin")
POST_STATUSES = ("published", "hidden")

Role = Literal["consumer", "creator", "admin"]
PostStatus = Literal["published", "hidden"]

# ── Item type discriminators ──────────────────────────────────────────────
USER = "user"
POST = "post"
LIKE = "like"
RATING = "rating"
COMMENT = "comment"
META = "meta"

ENTITY_KINDS = (USER, POST, LIKE, RATING, COMMENT)

# Reserved user ids
DEFAULT_ACTIVE_USER_ID = "u_consumer"
SEED_ADMIN_ID = "u_admin"

# Aggregate collection attribute for each entity kind
COLLECTIONS = {
    USER: "users",
    POST: "posts",
    LIKE: "likes",
    RATING: "ratings",
    COMMENT: "comments",
}


class ItemRef(NamedTuple):
    """Names one item of the partitioned backend: (type, id)."""

    kind: str
    item_id: str


def record_item_id(kind: str, record: Dict[str, Any]) -> str:
    """Item id of a raw record, applying the (postId, userId) fallback."""
    if record.get("id"):
        return record["id"]
    if kind in (LIKE, RATING):
        return f"{record.get('postId')}:{record.get('userId')}"
    raise ValueError(f"{kind} record has no id")


class Entity(BaseModel):
    """Common configuration for all records."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def item_id(self) -> str:
        return getattr(self, "id")

    def to_record(self) -> Dict[str, Any]:
        """Plain dict with persisted field names; unset optional ids are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class User(Entity):
    id: str
    name: str
    role: Role


class Post(Entity):
    id: str
    title: str = "Untitled"
    image_url: str
    creator_name: str = ""
    caption: str = ""
    location: str = ""
    people: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: int
    status: PostStatus = "published"


class PairedEntity(Entity):
    """
    Records keyed by (postId, userId).

    At most one per pair. Without an explicit id the partitioned backend
    stores them under the synthetic id "{postId}:{userId}" so repeated
    saves overwrite instead of duplicating.
    """

    id: Optional[str] = None
    post_id: str = Field(alias="postId")
    user_id: str = Field(alias="userId")
    at: int

    @property
    def item_id(self) -> str:
        return self.id or f"{self.post_id}:{self.user_id}"


class Like(PairedEntity):
    pass


class Rating(PairedEntity):
    rating: Union[int, float] = Field(ge=1, le=5)


class Comment(Entity):
    id: str
    post_id: str = Field(alias="postId")
    who: str
    text: str = Field(max_length=500)
    at: int


class Aggregate(BaseModel):
    """
    The complete materialized state: active-user pointer plus the four
    entity collections (and users). Unit of load/save for the file backend.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    active_user_id: str = Field(alias="activeUserId")
    users: List[User] = Field(default_factory=list)
    posts: List[Post] = Field(default_factory=list)
    likes: List[Like] = Field(default_factory=list)
    ratings: List[Rating] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Aggregate":
        return cls.model_validate(document)

    def item_refs(self) -> List[ItemRef]:
        """Every entity of the aggregate as a partitioned-backend reference."""
        refs = []
        for kind in ENTITY_KINDS:
            for entity in getattr(self, COLLECTIONS[kind]):
                refs.append(ItemRef(kind, entity.item_id))
        return refs
