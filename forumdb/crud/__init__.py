"""Model delegates, keyed by their attribute name on the client."""

from .base import ACTIONS, ModelDelegate
from .category import CategoryDelegate
from .comment import CommentDelegate
from .post import PostDelegate
from .user import UserDelegate
from .user_inbox import UserInboxDelegate
from .violation import CommentViolationDelegate, PostViolationDelegate

DELEGATES = {
    delegate.client_attr: delegate
    for delegate in (
        UserDelegate,
        CategoryDelegate,
        PostDelegate,
        CommentDelegate,
        PostViolationDelegate,
        CommentViolationDelegate,
        UserInboxDelegate,
    )
}

__all__ = [
    "ACTIONS",
    "DELEGATES",
    "ModelDelegate",
    "UserDelegate",
    "CategoryDelegate",
    "PostDelegate",
    "CommentDelegate",
    "PostViolationDelegate",
    "CommentViolationDelegate",
    "UserInboxDelegate",
]
