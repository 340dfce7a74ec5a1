"""Delegate for the `UserInbox` model."""

from ..models.user_inbox import UserInbox
from ..schemas.user_inbox import UserInboxCreate, UserInboxUpdate
from .base import ModelDelegate


class UserInboxDelegate(ModelDelegate[UserInbox, UserInboxCreate, UserInboxUpdate]):
    client_attr = "user_inbox"

    def __init__(self, client):
        super().__init__(client, UserInbox, UserInboxCreate, UserInboxUpdate)

    def list_for_user(self, user_id: str, *, unread_only: bool = False, take: int = 50):
        where = {"user_id": user_id}
        if unread_only:
            where["is_read"] = False
        return self.find_many(where=where, order_by={"created_at": "desc"}, take=take)
