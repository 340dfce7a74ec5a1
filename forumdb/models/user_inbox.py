from sqlalchemy import Column, String, Boolean, TIMESTAMP, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class UserInbox(Base):
    __tablename__ = "user_inbox"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Recipient
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Content
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, index=True)

    # Related content, kept as plain references so messages outlive deleted posts
    related_post_id = Column(String(36))
    related_comment_id = Column(String(36))

    # Status
    is_read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_user_inbox_user_unread", "user_id", "is_read", "created_at"),
    )

    # Relationships
    user = relationship("User", back_populates="inbox")
