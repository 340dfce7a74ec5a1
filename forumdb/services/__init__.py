"""Services package for the forum."""

from .admin import AdminService, admin_service
from .inbox import InboxService, inbox_service
from .moderation import ModerationService, moderation_service
from .posting import PostingService, posting_service
from .score_tasks import ScoreTasksService, score_tasks_service

__all__ = [
    "AdminService",
    "admin_service",
    "InboxService",
    "inbox_service",
    "ModerationService",
    "moderation_service",
    "PostingService",
    "posting_service",
    "ScoreTasksService",
    "score_tasks_service",
]
