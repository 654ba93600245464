"""
OpenBooks Backend — PhotoStore (in-memory aggregate owner)
==========================================================

What:  Holds the single authoritative Aggregate for the process lifetime and
       implements every operation the route layer needs.
How:   Each mutating operation runs as one pipeline:

           validate ──▶ authorize ──▶ mutate in memory ──▶ await persist ──▶ project
           (no await between the first three steps)

       Persistence goes through the injected DocumentStore. The aggregate is
       mutated before the save is awaited and is never rolled back: if the
       save raises, the exception propagates and memory stays ahead of the
       durable store until the next successful save.
Who:   One instance per app, created in main.py and reached from handlers
       through the get_store dependency.

Concurrency:
    Handlers run on a single asyncio loop. A handler cannot observe another
    handler's half-applied mutation, because no mutation spans an await.
    Two handlers can however both be suspended in persist at the same time;
    their saves interleave and the last one written wins. No lock is taken
    around persistence.

Lifecycle:
    load() runs once at startup (in the background). Until it completes,
    `ready` is False and every operation raises StoreNotReadyError.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from openbooks.exceptions import (
    AuthorizationError,
    NotFoundError,
    StoreNotReadyError,
    ValidationError,
)
from openbooks.models.entities import (
    COMMENT,
    DEFAULT_ACTIVE_USER_ID,
    LIKE,
    POST,
    RATING,
    ROLES,
    SEED_ADMIN_ID,
    USER,
    Aggregate,
    Comment,
    ItemRef,
    Like,
    Post,
    Rating,
    User,
)
from openbooks.schemas.post import PostDraft, PostSummary
from openbooks.services.projection import summarize_post
from openbooks.services.seed import build_seed_aggregate, new_id, now_ms
from openbooks.storage.base import DocumentStore

logger = logging.getLogger(__name__)

# ── Field limits ──────────────────────────────────────────────────────────
MAX_NAME_LENGTH = 60
MAX_TITLE_LENGTH = 120
MAX_CAPTION_LENGTH = 800
MAX_LOCATION_LENGTH = 120
MAX_PEOPLE = 10
MAX_TAGS = 12
MAX_COMMENT_LENGTH = 500
MIN_RATING = 1
MAX_RATING = 5


def split_list(value: Union[str, Sequence[str], None], limit: int) -> List[str]:
    """'a, b,,c' or ['a', ' b'] → trimmed, non-empty, order kept, at most `limit`."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    cleaned = [str(item).strip() for item in items]
    return [item for item in cleaned if item][:limit]


def human_size(size: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    if index == 0:
        return f"{int(value)} {units[index]}"
    return f"{value:.2f} {units[index]}"


def _validate_role(role: Any) -> str:
    if role not in ROLES:
        raise ValidationError(
            message="Invalid role",
            field="role",
            context={"allowed": list(ROLES)},
        )
    return role


def _coerce_rating(raw: Any) -> Union[int, float]:
    """Numeric value in [1, 5]; numeric strings are accepted."""
    value: Union[int, float, None] = None
    if isinstance(raw, bool):
        value = None
    elif isinstance(raw, (int, float)):
        value = raw
    elif isinstance(raw, str):
        try:
            parsed = float(raw.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            value = int(parsed) if parsed.is_integer() else parsed

    # NaN and inf fail the comparison; ints of any size compare exactly.
    if value is None or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(message="rating must be 1-5", field="rating")
    return value


class PhotoStore:
    """
    Owner of the in-memory aggregate.

    Args:
        backend:    The DocumentStore chosen at startup.
        clock:      Returns the current time in epoch milliseconds.
        id_factory: Returns a fresh unique id for users, posts and comments.
    """

    def __init__(
        self,
        backend: DocumentStore,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_id,
    ):
        self.backend = backend
        self._clock = clock
        self._new_id = id_factory
        self._aggregate: Optional[Aggregate] = None

    # ══════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════════════════════════════

    @property
    def ready(self) -> bool:
        return self._aggregate is not None

    @property
    def aggregate(self) -> Aggregate:
        if self._aggregate is None:
            raise StoreNotReadyError()
        return self._aggregate

    async def load(self) -> Aggregate:
        """
        Materialize the aggregate from the backend, seeding when it is empty.

        Raises whatever the backend raises; the store then stays not-ready.
        """
        aggregate = await self.backend.load_all()
        if aggregate is None:
            logger.info("No existing data in %s backend; seeding", self.backend.provider)
            aggregate = build_seed_aggregate(self._clock(), self._new_id)
            await self.backend.save_all(aggregate)
        self._aggregate = aggregate
        logger.info(
            "Store ready: %d users, %d posts (active=%s)",
            len(aggregate.users),
            len(aggregate.posts),
            aggregate.active_user_id,
        )
        return aggregate

    async def _persist(self, removed: Iterable[ItemRef] = ()) -> None:
        await self.backend.save_all(self.aggregate, removed)

    # ══════════════════════════════════════════════════════════════════════
    # Lookups and authorization
    # ══════════════════════════════════════════════════════════════════════

    def _viewer(self) -> Optional[User]:
        aggregate = self.aggregate
        for user in aggregate.users:
            if user.id == aggregate.active_user_id:
                return user
        return aggregate.users[0] if aggregate.users else None

    def active_user(self) -> User:
        """The active user, falling back to the first user."""
        viewer = self._viewer()
        if viewer is None:
            raise NotFoundError(resource="user", resource_id=self.aggregate.active_user_id)
        return viewer

    def _require_role(self, *roles: str) -> User:
        me = self.active_user()
        if me.role not in roles:
            message = "Admin only" if roles == ("admin",) else "Creator/Admin only"
            raise AuthorizationError(
                message=message,
                required_roles=list(roles),
                context={"role": me.role},
            )
        return me

    def _find_user(self, user_id: str) -> User:
        for user in self.aggregate.users:
            if user.id == user_id:
                return user
        raise NotFoundError(resource="User", resource_id=user_id)

    def _find_post(self, post_id: str) -> Post:
        for post in self.aggregate.posts:
            if post.id == post_id:
                return post
        raise NotFoundError(resource="Post", resource_id=post_id)

    def _fallback_user_id(self) -> str:
        """u_consumer while it exists, else the first remaining user."""
        users = self.aggregate.users
        if any(u.id == DEFAULT_ACTIVE_USER_ID for u in users):
            return DEFAULT_ACTIVE_USER_ID
        return users[0].id if users else DEFAULT_ACTIVE_USER_ID

    def _summarize(self, post: Post) -> PostSummary:
        return summarize_post(self.aggregate, post, self._viewer())

    # ══════════════════════════════════════════════════════════════════════
    # Active user ("session")
    # ══════════════════════════════════════════════════════════════════════

    async def switch_active_user(self, user_id: Optional[str]) -> User:
        if not user_id:
            raise ValidationError(message="userId is required", field="userId")
        user = self._find_user(user_id)
        self.aggregate.active_user_id = user.id
        logger.info("Active user switched to %s", user.id)
        await self._persist()
        return user

    async def update_active_profile(self, name: Optional[str], role: Optional[str]) -> User:
        if not name or not role:
            raise ValidationError(message="name and role are required")
        role = _validate_role(role)
        me = self.active_user()
        me.name = str(name)[:MAX_NAME_LENGTH]
        me.role = role
        await self._persist()
        return me

    # ══════════════════════════════════════════════════════════════════════
    # Users
    # ══════════════════════════════════════════════════════════════════════

    def list_users(self) -> List[User]:
        return list(self.aggregate.users)

    async def create_user(self, name: Optional[str], role: Optional[str] = None) -> User:
        self._require_role("admin")
        if not name:
            raise ValidationError(message="name is required", field="name")
        user = User(
            id=self._new_id(),
            name=str(name)[:MAX_NAME_LENGTH],
            role=_validate_role(role or "creator"),
        )
        self.aggregate.users.insert(0, user)
        logger.info("User created: %s (%s)", user.id, user.role)
        await self._persist()
        return user

    async def delete_user(self, user_id: str) -> None:
        self._require_role("admin")
        if user_id == SEED_ADMIN_ID:
            raise ValidationError(message="Cannot delete seeded admin", field="id")
        self._find_user(user_id)

        aggregate = self.aggregate
        aggregate.users = [u for u in aggregate.users if u.id != user_id]
        if aggregate.active_user_id == user_id:
            aggregate.active_user_id = self._fallback_user_id()
        logger.info("User deleted: %s", user_id)
        await self._persist(removed=[ItemRef(USER, user_id)])

    # ══════════════════════════════════════════════════════════════════════
    # Posts
    # ══════════════════════════════════════════════════════════════════════

    def list_posts(self) -> List[PostSummary]:
        """All posts, newest first."""
        summaries = [self._summarize(post) for post in self.aggregate.posts]
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    def get_post(self, post_id: str) -> PostSummary:
        return self._summarize(self._find_post(post_id))

    def ensure_can_upload(self) -> User:
        """Authorization gate for uploads, checked before the image is stored."""
        return self._require_role("creator", "admin")

    async def create_post(self, draft: PostDraft, image_url: str) -> PostSummary:
        """
        Publish a post whose image has already been stored.

        Args:
            draft:     Raw metadata fields (people/tags comma-separated or lists).
            image_url: URL returned by the blob uploader.
        """
        me = self.ensure_can_upload()
        if not image_url:
            raise ValidationError(message="image file is required", field="image")

        post = Post(
            id=self._new_id(),
            title=str(draft.title or "Untitled")[:MAX_TITLE_LENGTH],
            image_url=image_url,
            creator_name=me.name,
            caption=str(draft.caption or "")[:MAX_CAPTION_LENGTH],
            location=str(draft.location or "")[:MAX_LOCATION_LENGTH],
            people=split_list(draft.people, MAX_PEOPLE),
            tags=split_list(draft.tags, MAX_TAGS),
            created_at=self._clock(),
            status="published",
        )
        self.aggregate.posts.insert(0, post)
        logger.info("Post created: %s by %s", post.id, me.id)
        await self._persist()
        return self._summarize(post)

    # ══════════════════════════════════════════════════════════════════════
    # Interactions
    # ══════════════════════════════════════════════════════════════════════

    async def toggle_like(self, post_id: str) -> PostSummary:
        """Add the active user's like, or remove it if present."""
        me = self.active_user()
        post = self._find_post(post_id)
        likes = self.aggregate.likes

        removed: List[ItemRef] = []
        index = next(
            (i for i, like in enumerate(likes) if like.post_id == post.id and like.user_id == me.id),
            None,
        )
        if index is not None:
            like = likes.pop(index)
            removed.append(ItemRef(LIKE, like.item_id))
        else:
            likes.insert(0, Like(post_id=post.id, user_id=me.id, at=self._clock()))

        await self._persist(removed)
        return self._summarize(post)

    async def rate_post(self, post_id: str, rating: Any) -> PostSummary:
        """Set the active user's rating; a second call overwrites the first."""
        me = self.active_user()
        post = self._find_post(post_id)
        value = _coerce_rating(rating)
        ratings = self.aggregate.ratings

        index = next(
            (i for i, r in enumerate(ratings) if r.post_id == post.id and r.user_id == me.id),
            None,
        )
        record = Rating(
            id=ratings[index].id if index is not None else None,
            post_id=post.id,
            user_id=me.id,
            rating=value,
            at=self._clock(),
        )
        if index is not None:
            ratings[index] = record
        else:
            ratings.insert(0, record)

        await self._persist()
        return self._summarize(post)

    async def add_comment(self, post_id: str, text: Optional[str]) -> PostSummary:
        me = self.active_user()
        post = self._find_post(post_id)
        body = str(text or "").strip()
        if not body:
            raise ValidationError(message="text is required", field="text")

        self.aggregate.comments.insert(
            0,
            Comment(
                id=self._new_id(),
                post_id=post.id,
                who=me.name,
                text=body[:MAX_COMMENT_LENGTH],
                at=self._clock(),
            ),
        )
        await self._persist()
        return self._summarize(post)

    # ══════════════════════════════════════════════════════════════════════
    # Moderation
    # ══════════════════════════════════════════════════════════════════════

    async def toggle_post_status(self, post_id: str) -> str:
        self._require_role("admin")
        post = self._find_post(post_id)
        post.status = "hidden" if post.status == "published" else "published"
        logger.info("Post %s is now %s", post.id, post.status)
        await self._persist()
        return post.status

    async def delete_post(self, post_id: str) -> None:
        """Delete a post together with its likes, ratings and comments."""
        self._require_role("admin")
        self._find_post(post_id)
        aggregate = self.aggregate

        removed = [ItemRef(POST, post_id)]
        removed += [ItemRef(LIKE, x.item_id) for x in aggregate.likes if x.post_id == post_id]
        removed += [ItemRef(RATING, x.item_id) for x in aggregate.ratings if x.post_id == post_id]
        removed += [ItemRef(COMMENT, x.item_id) for x in aggregate.comments if x.post_id == post_id]

        aggregate.posts = [p for p in aggregate.posts if p.id != post_id]
        aggregate.likes = [x for x in aggregate.likes if x.post_id != post_id]
        aggregate.ratings = [x for x in aggregate.ratings if x.post_id != post_id]
        aggregate.comments = [x for x in aggregate.comments if x.post_id != post_id]

        logger.info("Post %s deleted (%d dependent items)", post_id, len(removed) - 1)
        await self._persist(removed)

    def export(self) -> Dict[str, Any]:
        """The whole aggregate in its persisted document form."""
        self._require_role("admin")
        return self.aggregate.to_document()

    async def reset(self) -> Aggregate:
        """
        Replace the aggregate with a fresh seed.

        Items of the previous aggregate that the new one does not contain are
        passed to the backend as removed, so the partitioned backend ends up
        with exactly the seed state too.
        """
        self._require_role("admin")
        previous = self.aggregate
        fresh = build_seed_aggregate(self._clock(), self._new_id)
        kept = set(fresh.item_refs())
        removed = [ref for ref in previous.item_refs() if ref not in kept]

        self._aggregate = fresh
        logger.info("Store reset to seed state (%d stale items)", len(removed))
        await self._persist(removed)
        return fresh

    # ══════════════════════════════════════════════════════════════════════
    # Status
    # ══════════════════════════════════════════════════════════════════════

    async def status(self) -> Dict[str, Any]:
        aggregate = self.aggregate
        info = await self.backend.describe()
        size = int(info.get("size_bytes", 0))
        database = (
            "Database (Cosmos DB, partitioned by type)"
            if info["provider"] == "cosmos"
            else "Database (JSON file db.json)"
        )
        return {
            "users": len(aggregate.users),
            "posts": len(aggregate.posts),
            "db_provider": info["provider"],
            "db_size_bytes": size,
            "db_size_human": human_size(size),
            "services": [
                {"name": "REST API Endpoint (FastAPI)", "state": "OK", "dot": ""},
                {"name": database, "state": "OK", "dot": ""},
                {
                    "name": "Caching Layer",
                    "state": "WARN",
                    "dot": "warn",
                    "note": "Not enabled.",
                },
                {
                    "name": "Auth & Roles",
                    "state": "WARN",
                    "dot": "warn",
                    "note": "Demo-only active user switch, no credentials.",
                },
            ],
        }
