"""Delegate for the `Comment` model.

A reply's parent must exist and belong to the same post; the check runs on
create and whenever `parent_id` or `post_id` changes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.exceptions import ForeignKeyConstraintError, QueryValidationError
from ..models.comment import Comment
from ..schemas.comment import CommentCreate, CommentUpdate
from .base import ModelDelegate


class CommentDelegate(ModelDelegate[Comment, CommentCreate, CommentUpdate]):
    client_attr = "comment"

    def __init__(self, client):
        super().__init__(client, Comment, CommentCreate, CommentUpdate)

    def _check_parent(self, session: Session, comment_id: Optional[str], post_id: str, parent_id: Optional[str]) -> None:
        if parent_id is None:
            return
        if comment_id is not None and parent_id == comment_id:
            raise QueryValidationError("parent_id", "a comment cannot reply to itself", model=self.name)
        parent_post_id = session.execute(
            select(Comment.post_id).where(Comment.id == parent_id)
        ).scalar_one_or_none()
        if parent_post_id is None:
            raise ForeignKeyConstraintError(self.name, "parent_id")
        if parent_post_id != post_id:
            raise QueryValidationError("parent_id", "the parent comment belongs to a different post", model=self.name)
        if comment_id is None:
            return
        # Walk up from the new parent; reaching this comment would close a cycle
        ancestor = parent_id
        while ancestor is not None:
            ancestor = session.execute(
                select(Comment.parent_id).where(Comment.id == ancestor)
            ).scalar_one_or_none()
            if ancestor == comment_id:
                raise QueryValidationError("parent_id", "a comment cannot reply to its own reply", model=self.name)

    def _check_moved_replies(self, session: Session, comment_id: str, post_id: str) -> None:
        stray = session.execute(
            select(Comment.id).where(Comment.parent_id == comment_id, Comment.post_id != post_id).limit(1)
        ).first()
        if stray is not None:
            raise QueryValidationError("post_id", "a comment with replies cannot move to another post", model=self.name)

    def _check_write(self, session: Session, values: Dict[str, Any], existing: Optional[Comment] = None) -> None:
        if existing is None:
            self._check_parent(session, values.get("id"), values["post_id"], values.get("parent_id"))
            return
        if "parent_id" not in values and "post_id" not in values:
            return
        post_id = values.get("post_id", existing.post_id)
        self._check_parent(session, existing.id, post_id, values.get("parent_id", existing.parent_id))
        if post_id != existing.post_id:
            self._check_moved_replies(session, existing.id, post_id)

    def _check_bulk_update(self, session: Session, ids: List[Any], values: Dict[str, Any]) -> None:
        if "parent_id" not in values and "post_id" not in values:
            return
        rows = session.execute(select(Comment).where(Comment.id.in_(ids))).scalars().all()
        for row in rows:
            self._check_write(session, values, existing=row)

    def list_replies(self, comment_id: str) -> List[Dict[str, Any]]:
        return self.record({"id": comment_id}).replies(order_by={"created_at": "asc"}).execute()
