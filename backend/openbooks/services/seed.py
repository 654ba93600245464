"""
OpenBooks Backend — Seed / Reset Procedure
==========================================

What:  Builds the known initial aggregate used on first start and by the
       admin reset.
How:   Fixed user roster and sample posts; post and comment ids come from
       `new_id` and timestamps from `now_ms`, so tests can pin both.

Resulting state:
    6 users (admin, creator, consumer + three named creators)
    8 published posts, created one hour apart, newest first
    8 ratings, one per post, by the pseudo-user "seed"
    4 comments, on every odd-index post, by "Consumer"
    activeUserId = u_consumer
"""

import time
import uuid
from typing import Callable, Optional

from openbooks.models.entities import (
    DEFAULT_ACTIVE_USER_ID,
    SEED_ADMIN_ID,
    Aggregate,
    Comment,
    Post,
    Rating,
    User,
)

HOUR_MS = 3600 * 1000

# Ratings are attributed to this id; it is not a real user.
SEED_RATER_ID = "seed"

SEED_USERS = [
    {"id": SEED_ADMIN_ID, "name": "Admin", "role": "admin"},
    {"id": "u_creator", "name": "Creator", "role": "creator"},
    {"id": DEFAULT_ACTIVE_USER_ID, "name": "Consumer", "role": "consumer"},
    {"id": "u_john", "name": "John Doe", "role": "creator"},
    {"id": "u_jane", "name": "Jane Smith", "role": "creator"},
    {"id": "u_sarah", "name": "Sarah Johnson", "role": "creator"},
]

SEED_POSTS = [
    {
        "title": "Golden Hour in Santorini",
        "image_url": "https://images.unsplash.com/photo-1570077188670-e3a8d69ac5ff?w=1200",
        "creator_name": "John Doe",
        "tags": ["sunset", "travel"],
        "caption": "Soft blue hour over white rooftops.",
        "location": "Santorini, Greece",
        "people": ["John"],
    },
    {
        "title": "Mountain Serenity",
        "image_url": "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?w=1200",
        "creator_name": "Jane Smith",
        "tags": ["mountains", "nature"],
        "caption": "Quiet clouds hugging the peaks.",
        "location": "Himalayas, Nepal",
        "people": ["Jane"],
    },
    {
        "title": "Urban Reflections",
        "image_url": "https://images.unsplash.com/photo-1519501025264-65ba15a82390?w=1200",
        "creator_name": "Sarah Johnson",
        "tags": ["city", "night"],
        "caption": "Rainy streets, neon reflections.",
        "location": "New York, USA",
        "people": ["Sarah"],
    },
    {
        "title": "Blooming Paradise",
        "image_url": "https://images.unsplash.com/photo-1499002238440-d264edd596ec?w=1200",
        "creator_name": "Sarah Johnson",
        "tags": ["flowers", "nature"],
        "caption": "Spring colors everywhere.",
        "location": "Kyoto, Japan",
        "people": ["Sarah"],
    },
    {
        "title": "Ocean Dreams",
        "image_url": "https://images.unsplash.com/photo-1514282401047-d79a71a590e8?w=1200",
        "creator_name": "John Doe",
        "tags": ["beach", "ocean"],
        "caption": "Waves + golden light.",
        "location": "Algarve, Portugal",
        "people": ["John"],
    },
    {
        "title": "Forest Whispers",
        "image_url": "https://images.unsplash.com/photo-1448375240586-882707db888b?w=1200",
        "creator_name": "Jane Smith",
        "tags": ["forest", "trees"],
        "caption": "Mist between tall trees.",
        "location": "Scotland",
        "people": ["Jane"],
    },
    {
        "title": "Desert Sunset",
        "image_url": "https://images.unsplash.com/photo-1509316785289-025f5b846b35?w=1200",
        "creator_name": "John Doe",
        "tags": ["desert", "sunset"],
        "caption": "Clean lines of dunes.",
        "location": "Dubai, UAE",
        "people": ["John"],
    },
    {
        "title": "Northern Lights",
        "image_url": "https://images.unsplash.com/photo-1483347756197-71ef80e95f73?w=1200",
        "creator_name": "Sarah Johnson",
        "tags": ["aurora", "night", "nature"],
        "caption": "A sky that doesn’t look real.",
        "location": "Iceland",
        "people": ["Sarah"],
    },
]

SEED_RATINGS = [4.8, 4.9, 4.6, 4.7, 4.9, 4.5, 4.8, 5.0]


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


def build_seed_aggregate(
    now: Optional[int] = None,
    id_factory: Callable[[], str] = new_id,
) -> Aggregate:
    """
    Build a fresh seed aggregate.

    Args:
        now:        Reference time in epoch milliseconds (defaults to the clock).
        id_factory: Generator for post and comment ids.

    Returns:
        A new Aggregate; nothing from any previous state is carried over.
    """
    now = now_ms() if now is None else now

    users = [User(**u) for u in SEED_USERS]
    posts = [
        Post(
            id=id_factory(),
            created_at=now - (index + 1) * HOUR_MS,
            status="published",
            **sample,
        )
        for index, sample in enumerate(SEED_POSTS)
    ]
    ratings = [
        Rating(post_id=post.id, user_id=SEED_RATER_ID, rating=value, at=now)
        for post, value in zip(posts, SEED_RATINGS)
    ]
    comments = [
        Comment(
            id=id_factory(),
            post_id=post.id,
            who="Consumer",
            text="Love this!",
            at=now - 10_000,
        )
        for index, post in enumerate(posts)
        if index % 2 == 1
    ]

    return Aggregate(
        active_user_id=DEFAULT_ACTIVE_USER_ID,
        users=users,
        posts=posts,
        likes=[],
        ratings=ratings,
        comments=comments,
    )
