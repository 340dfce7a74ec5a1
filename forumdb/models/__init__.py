"""
SQLAlchemy Models for the forum
"""

from ..database import Base
from .user import User
from .category import Category
from .post import Post
from .comment import Comment
from .post_violation import PostViolation
from .comment_violation import CommentViolation
from .user_inbox import UserInbox

# Export all models
__all__ = [
    "Base",
    "User",
    "Category",
    "Post",
    "Comment",
    "PostViolation",
    "CommentViolation",
    "UserInbox",
]
