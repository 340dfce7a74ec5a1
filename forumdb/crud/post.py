"""Delegate for the `Post` model."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.exceptions import QueryValidationError
from ..models.post import Post
from ..schemas.post import PostCreate, PostUpdate
from .base import ModelDelegate

AUTHOR_SUMMARY = {"select": {"id": True, "username": True, "avatar": True}}


class PostDelegate(ModelDelegate[Post, PostCreate, PostUpdate]):
    client_attr = "post"

    def __init__(self, client):
        super().__init__(client, Post, PostCreate, PostUpdate)

    def list_feed(
        self,
        *,
        category_id: Optional[str] = None,
        cursor: Optional[str] = None,
        take: int = 20,
        include_violations: bool = False,
    ) -> List[Dict[str, Any]]:
        """Newest posts first, optionally for one category, paging by post id."""
        where: Dict[str, Any] = {}
        if category_id:
            where["category_id"] = category_id
        if not include_violations:
            where["is_violation"] = False
        return self.find_many(
            where=where,
            order_by={"created_at": "desc"},
            cursor={"id": cursor} if cursor else None,
            skip=1 if cursor else None,
            take=take,
            include={
                "author": AUTHOR_SUMMARY,
                "category": {"select": {"id": True, "name": True}},
                "_count": {"select": {"comments": True}},
            },
        )

    def get_with_comments(self, post_id: str) -> Optional[Dict[str, Any]]:
        """A post with its top-level comments (oldest first) and their replies."""
        return self.find_unique(
            where={"id": post_id},
            include={
                "author": AUTHOR_SUMMARY,
                "comments": {
                    "where": {"parent_id": None},
                    "order_by": {"created_at": "asc"},
                    "include": {"author": AUTHOR_SUMMARY, "replies": {"order_by": {"created_at": "asc"}}},
                },
            },
        )

    def list_hot(self, take: int = 10) -> List[Dict[str, Any]]:
        """Most-commented posts first, as {id, title, comment_count}."""
        posts = self.find_many(
            order_by={"comments": {"_count": "desc"}},
            take=take,
            select={"id": True, "title": True, "_count": {"select": {"comments": True}}},
        )
        return [
            {"id": post["id"], "title": post["title"], "comment_count": post["_count"]["comments"]}
            for post in posts
        ]

    def search(self, keyword: str) -> List[Dict[str, Any]]:
        """Posts whose title or content contains `keyword`, newest first."""
        keyword = (keyword or "").strip()
        if not keyword:
            raise QueryValidationError("keyword", "search keyword cannot be empty", model=self.name)
        return self.find_many(
            where={"OR": [{"title": {"contains": keyword}}, {"content": {"contains": keyword}}]},
            order_by={"created_at": "desc"},
            include={
                "author": {"select": {"id": True, "username": True}},
                "category": True,
                "_count": {"select": {"comments": True}},
            },
        )
