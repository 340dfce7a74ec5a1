"""Service layer for registration, posting, commenting and edits."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..client import ForumClient, TransactionClient
from ..config import settings
from ..core.exceptions import ActionNotAllowedError
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

REPLY_EXCERPT_LENGTH = 30


class PostingService:
    """
    Service for user-generated content.

    Banned users (ban_until in the future) cannot post or comment. A user
    whose credit score is below BAN_THRESHOLD is banned for BAN_HOURS on
    their next attempt. Posts and comments can be edited MAX_EDIT_COUNT times.
    """

    def register_user(
        self, client: ForumClient, *, email: str, username: str, password: str, **profile
    ) -> Dict[str, Any]:
        """Create an account from a plain password (hashed with passlib)."""
        user = client.user.create_user(email=email, username=username, password=password, **profile)
        logger.info(f"Registered user {user['id']} ({username})")
        return user

    def ensure_can_post(self, client: ForumClient, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Raise ActionNotAllowedError when the user may not publish right now."""
        now = now or utcnow()
        user = client.user.find_unique_or_throw(
            where={"id": user_id},
            select={"id": True, "username": True, "credit_score": True, "ban_until": True},
        )
        if user["ban_until"] and user["ban_until"] > now:
            hours_left = -(-(user["ban_until"] - now) // timedelta(hours=1))
            raise ActionNotAllowedError(
                f"Your account is suspended for another {hours_left} hour(s)",
                model="User",
                meta={"ban_until": user["ban_until"], "credit_score": user["credit_score"]},
            )
        if user["credit_score"] < settings.BAN_THRESHOLD:
            ban_until = now + timedelta(hours=settings.BAN_HOURS)
            client.user.update(where={"id": user_id}, data={"ban_until": ban_until}, select={"id": True})
            logger.info(f"User {user_id} banned until {ban_until} (credit {user['credit_score']})")
            raise ActionNotAllowedError(
                f"Your credit score is below {settings.BAN_THRESHOLD}; posting is suspended for {settings.BAN_HOURS} hours",
                model="User",
                meta={"ban_until": ban_until, "credit_score": user["credit_score"]},
            )
        return user

    def create_post(
        self,
        client: ForumClient,
        *,
        author_id: str,
        category_id: str,
        title: str,
        content: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        self.ensure_can_post(client, author_id, now)
        return client.post.create(
            data={
                "title": title,
                "content": content,
                "author": {"connect": {"id": author_id}},
                "category": {"connect": {"id": category_id}},
            },
            include={"category": {"select": {"id": True, "name": True}}},
        )

    def create_comment(
        self,
        client: ForumClient,
        *,
        author_id: str,
        post_id: str,
        content: str,
        parent_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Create a comment or a reply; replying to someone else's comment notifies them."""
        author = self.ensure_can_post(client, author_id, now)

        def write(tx: TransactionClient) -> Dict[str, Any]:
            data = {"content": content, "post_id": post_id, "author_id": author_id}
            if parent_id:
                data["parent_id"] = parent_id
            comment = tx.comment.create(data=data, include={"parent": {"select": {"author_id": True}}})
            parent = comment.pop("parent")
            if parent and parent["author_id"] != author_id:
                excerpt = content[:REPLY_EXCERPT_LENGTH]
                if len(content) > REPLY_EXCERPT_LENGTH:
                    excerpt += "..."
                tx.user_inbox.create(data={
                    "user_id": parent["author_id"],
                    "message": f"{author['username']} replied to your comment: \"{excerpt}\"",
                    "type": "comment_reply",
                    "related_post_id": post_id,
                    "related_comment_id": comment["id"],
                })
            return comment

        return client.transaction(write)

    def _edit(self, delegate, kind: str, *, record_id: str, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data:
            raise ActionNotAllowedError(f"Nothing to change on this {kind}", model=delegate.name)
        updated = delegate.update_many(
            where={"id": record_id, "author_id": user_id, "edit_count": {"lt": settings.MAX_EDIT_COUNT}},
            data=dict(data, edit_count={"increment": 1}),
        )
        if updated:
            return delegate.find_unique_or_throw(where={"id": record_id})

        current = delegate.find_unique_or_throw(where={"id": record_id}, select={"author_id": True, "edit_count": True})
        if current["author_id"] != user_id:
            raise ActionNotAllowedError(f"You can only edit your own {kind}", model=delegate.name)
        raise ActionNotAllowedError(
            f"This {kind} has already been edited {current['edit_count']} time(s); the limit is {settings.MAX_EDIT_COUNT}",
            model=delegate.name,
        )

    def edit_post(
        self,
        client: ForumClient,
        *,
        post_id: str,
        user_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = {key: value for key, value in (("title", title), ("content", content)) if value is not None}
        return self._edit(client.post, "post", record_id=post_id, user_id=user_id, data=data)

    def edit_comment(self, client: ForumClient, *, comment_id: str, user_id: str, content: str) -> Dict[str, Any]:
        return self._edit(client.comment, "comment", record_id=comment_id, user_id=user_id, data={"content": content})

    def hot_posts(self, client: ForumClient, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return client.post.list_hot(take=limit or settings.HOT_POSTS_LIMIT)

    def search_posts(self, client: ForumClient, keyword: str) -> List[Dict[str, Any]]:
        return client.post.search(keyword)

    def _delete(self, client: ForumClient, delegate, kind: str, *, record_id: str, user_id: str) -> Dict[str, Any]:
        record = delegate.find_unique_or_throw(where={"id": record_id}, select={"id": True, "author_id": True})
        if record["author_id"] != user_id:
            user = client.user.find_unique(where={"id": user_id}, select={"is_admin": True})
            if not user or not user["is_admin"]:
                raise ActionNotAllowedError(f"You can only delete your own {kind}", model=delegate.name)
        removed = delegate.delete(where={"id": record_id})
        logger.info(f"{kind.capitalize()} {record_id} deleted by {user_id}")
        return removed

    def delete_post(self, client: ForumClient, *, post_id: str, user_id: str) -> Dict[str, Any]:
        """Delete a post (and its comments); allowed for the author and for admins."""
        return self._delete(client, client.post, "post", record_id=post_id, user_id=user_id)

    def delete_comment(self, client: ForumClient, *, comment_id: str, user_id: str) -> Dict[str, Any]:
        """Delete a comment (and its replies); allowed for the author and for admins."""
        return self._delete(client, client.comment, "comment", record_id=comment_id, user_id=user_id)


# Singleton instance
posting_service = PostingService()
