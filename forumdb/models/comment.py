"""Comment model for threaded post replies."""

from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, Index, Boolean
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class Comment(Base):
    """Reply to a post, optionally nested under another comment of the same post."""

    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=generate_id)

    content = Column(Text, nullable=False)

    # Moderation
    is_violation = Column(Boolean, nullable=False, default=False, index=True)
    edit_count = Column(Integer, nullable=False, default=0)

    # Foreign Keys
    author_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    post_id = Column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    parent_id = Column(
        String(36),
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, index=True)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_comment_post_created", "post_id", "created_at"),
    )

    # Relationships
    author = relationship("User", back_populates="comments")
    post = relationship("Post", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship("Comment", back_populates="parent", passive_deletes=True)
    violations = relationship("CommentViolation", back_populates="comment", passive_deletes=True)
