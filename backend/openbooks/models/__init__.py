from openbooks.models.entities import (
    Aggregate,
    Comment,
    ItemRef,
    Like,
    Post,
    Rating,
    User,
)

__all__ = ["Aggregate", "Comment", "ItemRef", "Like", "Post", "Rating", "User"]
