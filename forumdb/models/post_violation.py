"""PostViolation model for moderation marks on posts."""

from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class PostViolation(Base):
    """Penalty issued by an admin against a post."""

    __tablename__ = "post_violations"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Foreign Keys
    post_id = Column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    admin_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    reason = Column(Text, nullable=False)
    points_deducted = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        # An admin marks a post at most once
        UniqueConstraint("post_id", "admin_id", name="uq_post_violation_post_admin"),
    )

    # Relationships
    post = relationship("Post", back_populates="violations")
    admin = relationship("User", back_populates="post_violations")
