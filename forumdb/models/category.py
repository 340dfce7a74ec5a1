"""Category model for forum boards."""

from sqlalchemy import Column, String, Text, TIMESTAMP
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.datetime_utils import utcnow
from ..utils.identifiers import generate_id


class Category(Base):
    """Forum board grouping posts by topic."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    posts = relationship("Post", back_populates="category", passive_deletes="all")
