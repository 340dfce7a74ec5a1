"""Service layer for the admin console: messaging, user management and statistics."""

import logging
from typing import Any, Dict, List

from ..client import ForumClient
from ..config import settings
from ..core.exceptions import ActionNotAllowedError, QueryValidationError, RecordNotFoundError

logger = logging.getLogger(__name__)

ALL_USERS = "all"


class AdminService:
    """
    Service for administrator actions.

    Every method takes the acting admin's id first and refuses to run for
    anyone who is not an administrator.
    """

    def _require_admin(self, client: ForumClient, admin_id: str) -> None:
        admin = client.user.find_unique(where={"id": admin_id}, select={"id": True, "is_admin": True})
        if not admin or not admin["is_admin"]:
            raise ActionNotAllowedError("Only administrators can use the admin console", model="User")

    def send_message(
        self, client: ForumClient, *, admin_id: str, user_id: str, message: str, type: str = "admin"
    ) -> int:
        """Message one user, or every non-admin when `user_id` is "all"; returns the number sent."""
        self._require_admin(client, admin_id)
        if not message or not message.strip():
            raise QueryValidationError("message", "message cannot be empty", model="UserInbox")

        if user_id == ALL_USERS:
            recipients = client.user.find_many(where={"is_admin": False}, select={"id": True})
            if not recipients:
                raise RecordNotFoundError("User", {"is_admin": False}, reason="No users to message")
            client.transaction([
                client.user_inbox.prepare("create", data={"user_id": user["id"], "message": message, "type": type})
                for user in recipients
            ])
            logger.info(f"Admin {admin_id} messaged {len(recipients)} users")
            return len(recipients)

        client.user.find_unique_or_throw(where={"id": user_id}, select={"id": True})
        client.user_inbox.create(data={"user_id": user_id, "message": message, "type": type})
        logger.info(f"Admin {admin_id} messaged user {user_id}")
        return 1

    def restore_credit(self, client: ForumClient, *, admin_id: str, user_id: str) -> Dict[str, Any]:
        """Reset a user's credit to RESTORED_CREDIT_SCORE, lift any ban and tell them."""
        self._require_admin(client, admin_id)
        score = settings.RESTORED_CREDIT_SCORE
        user, _ = client.transaction([
            client.user.prepare(
                "update",
                where={"id": user_id},
                data={"credit_score": score, "ban_until": None},
                omit={"password": True},
            ),
            client.user_inbox.prepare(
                "create",
                data={
                    "user_id": user_id,
                    "message": f"An administrator restored your credit score to {score}; you can post again.",
                    "type": "system",
                },
            ),
        ])
        logger.info(f"Admin {admin_id} restored credit of user {user_id} to {score}")
        return user

    def set_admin(self, client: ForumClient, *, admin_id: str, user_id: str, is_admin: bool) -> Dict[str, Any]:
        self._require_admin(client, admin_id)
        user = client.user.update(where={"id": user_id}, data={"is_admin": is_admin}, omit={"password": True})
        logger.info(f"Admin {admin_id} set is_admin={is_admin} on user {user_id}")
        return user

    def list_users(self, client: ForumClient, admin_id: str) -> List[Dict[str, Any]]:
        """All users, newest first, without password hashes, with post and comment counts."""
        self._require_admin(client, admin_id)
        return client.user.find_many(
            order_by={"created_at": "desc"},
            omit={"password": True},
            include={"_count": {"select": {"posts": True, "comments": True}}},
        )

    def stats(self, client: ForumClient, admin_id: str) -> Dict[str, int]:
        self._require_admin(client, admin_id)
        return {
            "total_posts": client.post.count(),
            "total_comments": client.comment.count(),
            "total_users": client.user.count(),
            "total_categories": client.category.count(),
        }

    def list_replies(
        self, client: ForumClient, *, admin_id: str, page: int = 1, limit: int = 20
    ) -> Dict[str, Any]:
        """User replies forwarded to this admin, newest first, one page at a time."""
        self._require_admin(client, admin_id)
        if page < 1:
            raise QueryValidationError("page", f"expected a positive integer, got {page!r}")
        if limit < 1:
            raise QueryValidationError("limit", f"expected a positive integer, got {limit!r}")

        where = {"user_id": admin_id, "type": "user_reply"}
        replies = client.user_inbox.find_many(
            where=where,
            order_by={"created_at": "desc"},
            skip=(page - 1) * limit,
            take=limit,
            include={"user": {"select": {"username": True, "email": True}}},
        )
        total = client.user_inbox.count(where=where)
        return {
            "replies": replies,
            "pagination": {
                "total_items": total,
                "current_page": page,
                "total_pages": -(-total // limit),
                "limit": limit,
            },
        }


# Singleton instance
admin_service = AdminService()
