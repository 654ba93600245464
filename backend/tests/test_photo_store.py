"""
OpenBooks Backend — PhotoStore Unit Tests
=========================================

What:  Every operation of the in-memory aggregate owner: loading and seeding,
       the active user, user management, posts, interactions, moderation,
       reset and status.
How:   A real JsonFileStore in a temp directory (see conftest.store);
       recording backends where the removed-item bookkeeping matters.
"""

import asyncio
import json

import pytest

from openbooks.exceptions import (
    AuthorizationError,
    NotFoundError,
    StoreNotReadyError,
    ValidationError,
)
from openbooks.models.entities import COMMENT, LIKE, POST, RATING, USER, ItemRef
from openbooks.schemas.post import PostDraft
from openbooks.services.photo_store import PhotoStore, human_size, split_list
from openbooks.storage.file_store import JsonFileStore


class RecordingBackend(JsonFileStore):
    """JsonFileStore that remembers the removed refs of every save."""

    def __init__(self, path):
        super().__init__(path)
        self.saves = []

    async def save_all(self, aggregate, removed=()):
        self.saves.append(list(removed))
        await super().save_all(aggregate, removed)


class SlowBackend(JsonFileStore):
    """Suspends inside every save so two requests can overlap in persist."""

    async def save_all(self, aggregate, removed=()):
        await asyncio.sleep(0.01)
        await super().save_all(aggregate, removed)


class FailingBackend(JsonFileStore):
    def __init__(self, path):
        super().__init__(path)
        self.fail = False

    async def save_all(self, aggregate, removed=()):
        if self.fail:
            raise OSError("disk full")
        await super().save_all(aggregate, removed)


async def as_admin(store: PhotoStore) -> None:
    await store.switch_active_user("u_admin")


async def as_creator(store: PhotoStore) -> None:
    await store.switch_active_user("u_creator")


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

class TestHelpers:

    def test_split_list_trims_and_drops_empty(self):
        assert split_list("a, b,,c ,", 12) == ["a", "b", "c"]

    def test_split_list_caps(self):
        assert split_list(",".join(str(i) for i in range(20)), 10) == [str(i) for i in range(10)]

    def test_split_list_accepts_lists(self):
        assert split_list([" x ", "", "y"], 5) == ["x", "y"]
        assert split_list(None, 5) == []

    def test_human_size(self):
        assert human_size(0) == "0 B"
        assert human_size(512) == "512 B"
        assert human_size(2048) == "2.00 KB"
        assert human_size(3 * 1024 * 1024) == "3.00 MB"


# ══════════════════════════════════════════════════════════════════════════
# Lifecycle
# ══════════════════════════════════════════════════════════════════════════

class TestLoad:

    @pytest.mark.asyncio
    async def test_empty_backend_is_seeded_and_saved(self, store, file_backend):
        aggregate = store.aggregate
        assert store.ready
        assert len(aggregate.users) == 6
        assert len(aggregate.posts) == 8
        assert aggregate.active_user_id == "u_consumer"
        assert file_backend.path.exists()

    @pytest.mark.asyncio
    async def test_existing_data_is_not_reseeded(self, store, file_backend):
        await store.add_comment(store.aggregate.posts[0].id, "persisted")

        reloaded = PhotoStore(file_backend)
        await reloaded.load()

        assert [p.id for p in reloaded.aggregate.posts] == [p.id for p in store.aggregate.posts]
        assert len(reloaded.aggregate.comments) == 5

    @pytest.mark.asyncio
    async def test_operations_before_load_raise(self, file_backend):
        photo_store = PhotoStore(file_backend)
        assert not photo_store.ready
        with pytest.raises(StoreNotReadyError, match="DB not ready yet"):
            photo_store.list_posts()
        with pytest.raises(StoreNotReadyError):
            await photo_store.toggle_like("anything")

    @pytest.mark.asyncio
    async def test_failed_save_keeps_memory_ahead(self, tmp_path, clock, id_factory):
        backend = FailingBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        post_id = photo_store.aggregate.posts[0].id

        backend.fail = True
        with pytest.raises(OSError, match="disk full"):
            await photo_store.add_comment(post_id, "not on disk")

        assert photo_store.get_post(post_id).comment_count == 1
        on_disk = json.loads((tmp_path / "db.json").read_text(encoding="utf-8"))
        assert len(on_disk["comments"]) == 4


# ══════════════════════════════════════════════════════════════════════════
# Active user
# ══════════════════════════════════════════════════════════════════════════

class TestActiveUser:

    @pytest.mark.asyncio
    async def test_default_active_user(self, store):
        me = store.active_user()
        assert (me.id, me.role) == ("u_consumer", "consumer")

    @pytest.mark.asyncio
    async def test_switch_persists(self, store, file_backend):
        user = await store.switch_active_user("u_jane")
        assert user.name == "Jane Smith"

        reloaded = await file_backend.load_all()
        assert reloaded.active_user_id == "u_jane"

    @pytest.mark.asyncio
    async def test_switch_requires_user_id(self, store):
        with pytest.raises(ValidationError, match="userId is required"):
            await store.switch_active_user(None)

    @pytest.mark.asyncio
    async def test_switch_to_unknown_user(self, store):
        with pytest.raises(NotFoundError):
            await store.switch_active_user("u_ghost")
        assert store.aggregate.active_user_id == "u_consumer"

    @pytest.mark.asyncio
    async def test_falls_back_to_first_user(self, store):
        store.aggregate.active_user_id = "u_ghost"
        assert store.active_user().id == "u_admin"

    @pytest.mark.asyncio
    async def test_update_profile_truncates_name(self, store):
        me = await store.update_active_profile("N" * 80, "creator")
        assert len(me.name) == 60
        assert me.role == "creator"
        assert store.active_user().role == "creator"

    @pytest.mark.asyncio
    async def test_update_profile_rejects_unknown_role(self, store):
        with pytest.raises(ValidationError, match="Invalid role"):
            await store.update_active_profile("Consumer", "superuser")
        assert store.active_user().role == "consumer"

    @pytest.mark.asyncio
    async def test_update_profile_requires_both_fields(self, store):
        with pytest.raises(ValidationError, match="name and role are required"):
            await store.update_active_profile("", "admin")


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════

class TestUsers:

    @pytest.mark.asyncio
    async def test_create_requires_admin(self, store):
        with pytest.raises(AuthorizationError, match="Admin only"):
            await store.create_user("Mallory", "admin")
        assert len(store.list_users()) == 6

    @pytest.mark.asyncio
    async def test_create_defaults_to_creator(self, store, id_factory):
        await as_admin(store)
        user = await store.create_user("Ana")

        assert user.role == "creator"
        assert user.id == f"id{id_factory.count}"
        assert store.list_users()[0] == user

    @pytest.mark.asyncio
    async def test_create_validates(self, store):
        await as_admin(store)
        with pytest.raises(ValidationError, match="name is required"):
            await store.create_user("")
        with pytest.raises(ValidationError, match="Invalid role"):
            await store.create_user("Ana", "owner")

    @pytest.mark.asyncio
    async def test_seed_admin_cannot_be_deleted(self, store):
        await as_admin(store)
        with pytest.raises(ValidationError, match="Cannot delete seeded admin"):
            await store.delete_user("u_admin")

    @pytest.mark.asyncio
    async def test_delete_unknown_user(self, store):
        await as_admin(store)
        with pytest.raises(NotFoundError):
            await store.delete_user("u_ghost")

    @pytest.mark.asyncio
    async def test_delete_requires_admin(self, store):
        with pytest.raises(AuthorizationError):
            await store.delete_user("u_john")
        assert any(u.id == "u_john" for u in store.list_users())

    @pytest.mark.asyncio
    async def test_deleting_active_user_resets_pointer(self, tmp_path, clock, id_factory):
        backend = RecordingBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        await as_admin(photo_store)
        boss = await photo_store.create_user("Boss", "admin")
        await photo_store.switch_active_user(boss.id)

        await photo_store.delete_user(boss.id)

        assert photo_store.aggregate.active_user_id == "u_consumer"
        assert all(u.id != boss.id for u in photo_store.list_users())
        assert backend.saves[-1] == [ItemRef(USER, boss.id)]

    @pytest.mark.asyncio
    async def test_deleting_active_consumer_points_at_remaining_user(self, store):
        # u_consumer promotes itself, then deletes itself while active
        await store.update_active_profile("Consumer", "admin")

        await store.delete_user("u_consumer")

        assert store.aggregate.active_user_id == "u_admin"
        assert store.export()["activeUserId"] == "u_admin"


# ══════════════════════════════════════════════════════════════════════════
# Posts
# ══════════════════════════════════════════════════════════════════════════

class TestPosts:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store):
        posts = store.list_posts()
        assert len(posts) == 8
        assert posts[0].title == "Golden Hour in Santorini"
        created = [p.created_at for p in posts]
        assert created == sorted(created, reverse=True)

    @pytest.mark.asyncio
    async def test_list_includes_hidden_posts(self, store):
        await as_admin(store)
        await store.toggle_post_status(store.aggregate.posts[0].id)
        assert len(store.list_posts()) == 8

    @pytest.mark.asyncio
    async def test_get_unknown_post(self, store):
        with pytest.raises(NotFoundError, match="Post with ID 'nope'"):
            store.get_post("nope")

    @pytest.mark.asyncio
    async def test_consumer_cannot_upload(self, store):
        with pytest.raises(AuthorizationError, match="Creator/Admin only"):
            store.ensure_can_upload()
        with pytest.raises(AuthorizationError):
            await store.create_post(PostDraft(title="x"), "/uploads/x.jpg")
        assert len(store.aggregate.posts) == 8

    @pytest.mark.asyncio
    async def test_create_post_normalizes_metadata(self, store):
        await as_creator(store)
        draft = PostDraft(
            title="T" * 200,
            caption="C" * 1000,
            location="Lisbon",
            people=",".join(f"p{i}" for i in range(15)),
            tags="a, b,,c",
        )
        summary = await store.create_post(draft, "/uploads/new.jpg")

        assert len(summary.title) == 120
        assert len(summary.caption) == 800
        assert summary.people == [f"p{i}" for i in range(10)]
        assert summary.tags == ["a", "b", "c"]
        assert summary.creator_name == "Creator"
        assert summary.status == "published"
        assert summary.like_count == 0
        assert store.list_posts()[0].id == summary.id

    @pytest.mark.asyncio
    async def test_create_post_defaults(self, store):
        await as_admin(store)
        summary = await store.create_post(PostDraft(), "/uploads/blank.jpg")
        assert summary.title == "Untitled"
        assert summary.caption == ""
        assert summary.people == []
        assert summary.tags == []

    @pytest.mark.asyncio
    async def test_create_post_requires_image_url(self, store):
        await as_creator(store)
        with pytest.raises(ValidationError, match="image file is required"):
            await store.create_post(PostDraft(title="x"), "")


# ══════════════════════════════════════════════════════════════════════════
# Interactions
# ══════════════════════════════════════════════════════════════════════════

class TestInteractions:

    @pytest.mark.asyncio
    async def test_like_toggles(self, store):
        post_id = store.aggregate.posts[0].id

        liked = await store.toggle_like(post_id)
        assert (liked.like_count, liked.liked_by_me) == (1, True)

        unliked = await store.toggle_like(post_id)
        assert (unliked.like_count, unliked.liked_by_me) == (0, False)
        assert store.aggregate.likes == []

    @pytest.mark.asyncio
    async def test_unlike_reports_removed_item(self, tmp_path, clock, id_factory):
        backend = RecordingBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        post_id = photo_store.aggregate.posts[0].id

        await photo_store.toggle_like(post_id)
        await photo_store.toggle_like(post_id)

        assert backend.saves[-2] == []
        assert backend.saves[-1] == [ItemRef(LIKE, f"{post_id}:u_consumer")]

    @pytest.mark.asyncio
    async def test_like_unknown_post(self, store):
        with pytest.raises(NotFoundError):
            await store.toggle_like("nope")

    @pytest.mark.asyncio
    async def test_rate_and_overwrite(self, store):
        post_id = store.aggregate.posts[0].id

        first = await store.rate_post(post_id, 3)
        assert (first.rating_count, first.my_rating) == (2, 3)

        second = await store.rate_post(post_id, 5)
        assert (second.rating_count, second.my_rating) == (2, 5)
        assert second.rating_avg == pytest.approx((4.8 + 5) / 2)

    @pytest.mark.asyncio
    async def test_rate_accepts_numeric_strings(self, store):
        summary = await store.rate_post(store.aggregate.posts[1].id, "5")
        assert summary.my_rating == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "bad", [0, 6, 5.5, "abc", None, True, float("nan"), float("inf"), 10**400, -(10**400)]
    )
    async def test_rate_out_of_range(self, store, bad):
        post_id = store.aggregate.posts[0].id
        with pytest.raises(ValidationError, match="rating must be 1-5"):
            await store.rate_post(post_id, bad)
        assert len(store.aggregate.ratings) == 8

    @pytest.mark.asyncio
    async def test_comment(self, store):
        post_id = store.aggregate.posts[0].id
        summary = await store.add_comment(post_id, "  nice shot  ")

        assert summary.comment_count == 1
        comment = summary.comments[0]
        assert (comment.who, comment.text) == ("Consumer", "nice shot")

    @pytest.mark.asyncio
    async def test_comment_truncated(self, store):
        summary = await store.add_comment(store.aggregate.posts[0].id, "x" * 600)
        assert len(summary.comments[0].text) == 500

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, store):
        with pytest.raises(ValidationError, match="text is required"):
            await store.add_comment(store.aggregate.posts[0].id, "   ")
        assert len(store.aggregate.comments) == 4

    @pytest.mark.asyncio
    async def test_newest_comment_first(self, store):
        post_id = store.aggregate.posts[1].id
        await store.add_comment(post_id, "first")
        summary = await store.add_comment(post_id, "second")
        assert [c.text for c in summary.comments] == ["second", "first", "Love this!"]

    @pytest.mark.asyncio
    async def test_concurrent_saves_keep_both_mutations(self, tmp_path, clock, id_factory):
        backend = SlowBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        first, second = photo_store.aggregate.posts[0].id, photo_store.aggregate.posts[1].id

        await asyncio.gather(
            photo_store.toggle_like(first),
            photo_store.rate_post(second, 3),
        )

        reloaded = await backend.load_all()
        assert [(like.post_id, like.user_id) for like in reloaded.likes] == [(first, "u_consumer")]
        assert any(r.post_id == second and r.rating == 3 for r in reloaded.ratings)


# ══════════════════════════════════════════════════════════════════════════
# Moderation, export and reset
# ══════════════════════════════════════════════════════════════════════════

class TestModeration:

    @pytest.mark.asyncio
    async def test_toggle_status_requires_admin(self, store):
        await as_creator(store)
        with pytest.raises(AuthorizationError, match="Admin only"):
            await store.toggle_post_status(store.aggregate.posts[0].id)

    @pytest.mark.asyncio
    async def test_toggle_status(self, store):
        await as_admin(store)
        post_id = store.aggregate.posts[0].id
        assert await store.toggle_post_status(post_id) == "hidden"
        assert await store.toggle_post_status(post_id) == "published"

    @pytest.mark.asyncio
    async def test_delete_post_cascades(self, tmp_path, clock, id_factory):
        backend = RecordingBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        target = photo_store.aggregate.posts[1]
        await photo_store.toggle_like(target.id)
        seed_comment = next(c for c in photo_store.aggregate.comments if c.post_id == target.id)

        await as_admin(photo_store)
        await photo_store.delete_post(target.id)

        aggregate = photo_store.aggregate
        assert all(p.id != target.id for p in aggregate.posts)
        assert all(x.post_id != target.id for x in aggregate.likes)
        assert all(x.post_id != target.id for x in aggregate.ratings)
        assert all(x.post_id != target.id for x in aggregate.comments)
        assert set(backend.saves[-1]) == {
            ItemRef(POST, target.id),
            ItemRef(LIKE, f"{target.id}:u_consumer"),
            ItemRef(RATING, f"{target.id}:seed"),
            ItemRef(COMMENT, seed_comment.id),
        }

    @pytest.mark.asyncio
    async def test_delete_unknown_post(self, store):
        await as_admin(store)
        with pytest.raises(NotFoundError):
            await store.delete_post("nope")

    @pytest.mark.asyncio
    async def test_export_requires_admin(self, store):
        with pytest.raises(AuthorizationError):
            store.export()

    @pytest.mark.asyncio
    async def test_export_uses_persisted_field_names(self, store):
        await as_admin(store)
        document = store.export()
        assert document["activeUserId"] == "u_admin"
        assert "postId" in document["comments"][0]
        assert len(document["posts"]) == 8

    @pytest.mark.asyncio
    async def test_reset_restores_seed(self, store, file_backend):
        await as_admin(store)
        await store.create_user("Extra")
        await store.delete_post(store.aggregate.posts[0].id)
        await store.toggle_like(store.aggregate.posts[0].id)

        fresh = await store.reset()

        assert (len(fresh.users), len(fresh.posts), len(fresh.ratings), len(fresh.comments)) == (
            6, 8, 8, 4,
        )
        assert fresh.likes == []
        assert fresh.active_user_id == "u_consumer"
        on_disk = await file_backend.load_all()
        assert [p.id for p in on_disk.posts] == [p.id for p in fresh.posts]

    @pytest.mark.asyncio
    async def test_reset_requires_admin(self, store):
        with pytest.raises(AuthorizationError):
            await store.reset()

    @pytest.mark.asyncio
    async def test_reset_reports_stale_items(self, tmp_path, clock, id_factory):
        backend = RecordingBackend(tmp_path / "db.json")
        photo_store = PhotoStore(backend, clock=clock, id_factory=id_factory)
        await photo_store.load()
        old_post_ids = {p.id for p in photo_store.aggregate.posts}
        await as_admin(photo_store)

        await photo_store.reset()

        removed = backend.saves[-1]
        assert {ref.item_id for ref in removed if ref.kind == POST} == old_post_ids
        assert not any(ref.kind == USER for ref in removed)


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_reports_counts_and_size(self, store):
        info = await store.status()
        assert info["users"] == 6
        assert info["posts"] == 8
        assert info["db_provider"] == "file"
        assert info["db_size_bytes"] > 0
        assert info["db_size_human"].endswith("KB")
        assert any("db.json" in s["name"] for s in info["services"])
