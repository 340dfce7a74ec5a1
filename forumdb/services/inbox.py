"""Service layer for the user inbox."""

import logging
from typing import Any, Dict

from ..client import ForumClient
from ..core.exceptions import ActionNotAllowedError

logger = logging.getLogger(__name__)


class InboxService:
    def _own_message(self, client: ForumClient, message_id: str, user_id: str) -> Dict[str, Any]:
        message = client.user_inbox.find_unique_or_throw(where={"id": message_id})
        if message["user_id"] != user_id:
            raise ActionNotAllowedError("This message belongs to another user", model="UserInbox")
        return message

    def unread_count(self, client: ForumClient, user_id: str) -> int:
        return client.user_inbox.count(where={"user_id": user_id, "is_read": False})

    def mark_read(self, client: ForumClient, *, message_id: str, user_id: str) -> Dict[str, Any]:
        self._own_message(client, message_id, user_id)
        return client.user_inbox.update(where={"id": message_id}, data={"is_read": True})

    def mark_all_read(self, client: ForumClient, user_id: str) -> int:
        return client.user_inbox.update_many(where={"user_id": user_id, "is_read": False}, data={"is_read": True})

    def reply_to_admins(self, client: ForumClient, *, message_id: str, user_id: str, content: str) -> int:
        """Send the user's reply to every administrator and mark the original as read.

        Returns the number of administrators notified.
        """
        original = self._own_message(client, message_id, user_id)
        admins = client.user.find_many(where={"is_admin": True}, select={"id": True})
        if not admins:
            raise ActionNotAllowedError("No administrator is available to receive the reply", model="User")

        operations = [
            client.user_inbox.prepare(
                "create",
                data={
                    "user_id": admin["id"],
                    "message": f"User reply: {content}\n\n(Original message: {original['message']})",
                    "type": "user_reply",
                    "related_post_id": original["related_post_id"],
                    "related_comment_id": original["related_comment_id"],
                },
            )
            for admin in admins
        ]
        if not original["is_read"]:
            operations.append(
                client.user_inbox.prepare("update", where={"id": message_id}, data={"is_read": True})
            )
        client.transaction(operations)
        logger.info(f"User {user_id} replied to message {message_id}; {len(admins)} admin(s) notified")
        return len(admins)


# Singleton instance
inbox_service = InboxService()
