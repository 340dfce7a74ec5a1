"""CommentViolation model for moderation marks on comments."""

from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class CommentViolation(Base):
    """Penalty issued by an admin against a comment."""

    __tablename__ = "comment_violations"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Foreign Keys
    comment_id = Column(
        String(36),
        ForeignKey("comments.id", ondelete="CASCADE"),
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

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("comment_id", "admin_id", name="uq_comment_violation_comment_admin"),
    )

    # Relationships
    comment = relationship("Comment", back_populates="violations")
    admin = relationship("User", back_populates="comment_violations")
