from .category import CategoryCreate, CategoryUpdate
from .comment import CommentCreate, CommentUpdate
from .common import WriteSchema
from .post import PostCreate, PostUpdate
from .user import UserCreate, UserUpdate
from .user_inbox import UserInboxCreate, UserInboxUpdate
from .violation import (
	CommentViolationCreate,
	CommentViolationUpdate,
	PostViolationCreate,
	PostViolationUpdate,
)

__all__ = [
	"WriteSchema",
	"UserCreate",
	"UserUpdate",
	"CategoryCreate",
	"CategoryUpdate",
	"PostCreate",
	"PostUpdate",
	"CommentCreate",
	"CommentUpdate",
	"PostViolationCreate",
	"PostViolationUpdate",
	"CommentViolationCreate",
	"CommentViolationUpdate",
	"UserInboxCreate",
	"UserInboxUpdate",
]
