"""
OpenBooks Backend — Post Projection
===================================

What:  Derives the read-only PostSummary for one post and one viewer.
How:   Linear scans over the aggregate's likes/ratings/comments. Pure: no
       mutation, no I/O, recomputed on every read.
"""

from typing import Optional

from openbooks.models.entities import Aggregate, Post, User
from openbooks.schemas.post import PostSummary

# Number of comments embedded in a summary; comment_count is never capped.
RECENT_COMMENT_LIMIT = 25


def summarize_post(
    aggregate: Aggregate, post: Post, viewer: Optional[User]
) -> PostSummary:
    """
    Build the enriched view of `post` as seen by `viewer`.

    rating_avg is 0 when the post has no ratings. Comments are the most
    recent first; the sort is stable, so comments with equal timestamps keep
    their insertion order (newest inserted first).
    """
    viewer_id = viewer.id if viewer else None

    likes = [like for like in aggregate.likes if like.post_id == post.id]
    ratings = [r for r in aggregate.ratings if r.post_id == post.id]
    comments = [c for c in aggregate.comments if c.post_id == post.id]

    rating_avg = sum(r.rating for r in ratings) / len(ratings) if ratings else 0
    my_rating = next((r.rating for r in ratings if r.user_id == viewer_id), 0)
    recent = sorted(comments, key=lambda c: c.at, reverse=True)[:RECENT_COMMENT_LIMIT]

    return PostSummary(
        **post.model_dump(),
        like_count=len(likes),
        liked_by_me=any(like.user_id == viewer_id for like in likes),
        rating_avg=rating_avg,
        rating_count=len(ratings),
        my_rating=my_rating,
        comment_count=len(comments),
        comments=recent,
    )
