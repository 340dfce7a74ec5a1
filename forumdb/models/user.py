from sqlalchemy import Column, Integer, String, Text, Boolean, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class User(Base):
    __tablename__ = "users"

    # Primary Key
    id = Column(String(36), primary_key=True, default=generate_id)

    # Authentication
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)

    # Role & Reputation
    is_admin = Column(Boolean, nullable=False, default=False)
    credit_score = Column(Integer, nullable=False, default=100)
    ban_until = Column(TIMESTAMP, nullable=True)

    # Profile
    contact_info = Column(String(255))
    signature = Column(Text)
    avatar = Column(String(500))

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    posts = relationship("Post", back_populates="author", passive_deletes=True)
    comments = relationship("Comment", back_populates="author", passive_deletes=True)
    inbox = relationship("UserInbox", back_populates="user", passive_deletes=True)
    post_violations = relationship("PostViolation", back_populates="admin", passive_deletes=True)
    comment_violations = relationship("CommentViolation", back_populates="admin", passive_deletes=True)
