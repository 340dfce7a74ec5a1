"""Delegates for moderation marks (`PostViolation`, `CommentViolation`)."""

from ..models.comment_violation import CommentViolation
from ..models.post_violation import PostViolation
from ..schemas.violation import (
    CommentViolationCreate,
    CommentViolationUpdate,
    PostViolationCreate,
    PostViolationUpdate,
)
from .base import ModelDelegate


class PostViolationDelegate(ModelDelegate[PostViolation, PostViolationCreate, PostViolationUpdate]):
    client_attr = "post_violation"

    def __init__(self, client):
        super().__init__(client, PostViolation, PostViolationCreate, PostViolationUpdate)

    def get_mark(self, *, post_id: str, admin_id: str):
        return self.find_unique(where={"post_id_admin_id": {"post_id": post_id, "admin_id": admin_id}})


class CommentViolationDelegate(ModelDelegate[CommentViolation, CommentViolationCreate, CommentViolationUpdate]):
    client_attr = "comment_violation"

    def __init__(self, client):
        super().__init__(client, CommentViolation, CommentViolationCreate, CommentViolationUpdate)

    def get_mark(self, *, comment_id: str, admin_id: str):
        return self.find_unique(where={"comment_id_admin_id": {"comment_id": comment_id, "admin_id": admin_id}})
