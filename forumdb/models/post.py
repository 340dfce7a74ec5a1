"""Post model for forum discussion."""

from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, Index, Boolean
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class Post(Base):
    """Topic started by a user inside a category."""

    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Content
    title = Column(String(500), nullable=False)
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
    category_id = Column(
        String(36),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, index=True)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_post_author_created", "author_id", "created_at"),
        Index("idx_post_category_created", "category_id", "created_at"),
    )

    # Relationships
    author = relationship("User", back_populates="posts")
    category = relationship("Category", back_populates="posts")
    comments = relationship("Comment", back_populates="post", passive_deletes=True)
    violations = relationship("PostViolation", back_populates="post", passive_deletes=True)
