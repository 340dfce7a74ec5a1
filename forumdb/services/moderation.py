"""Service layer for admin moderation of posts and comments."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..client import ForumClient
from ..config import settings
from ..core.exceptions import ActionNotAllowedError
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Violation of forum rules"
AUTHOR_CREDIT = {"select": {"id": True, "credit_score": True, "ban_until": True}}


class ModerationService:
    """
    Service for violation marks.

    A mark deducts credit points from the author (never below zero), bans the
    author for `BAN_HOURS` when the score drops under `BAN_THRESHOLD`, flags the
    content and notifies the author. Everything is written in one batch
    transaction; an admin can mark a given post or comment only once.
    """

    @staticmethod
    def apply_penalty(
        credit_score: int, ban_until: Optional[datetime], points: int, now: datetime
    ) -> Tuple[int, Optional[datetime]]:
        """New (credit_score, ban_until) after deducting `points`."""
        new_score = max(0, credit_score - points)
        if new_score < settings.BAN_THRESHOLD and (ban_until is None or ban_until < now):
            ban_until = now + timedelta(hours=settings.BAN_HOURS)
        return new_score, ban_until

    def _require_admin(self, client: ForumClient, admin_id: str) -> None:
        admin = client.user.find_unique(where={"id": admin_id}, select={"id": True, "is_admin": True})
        if not admin or not admin["is_admin"]:
            raise ActionNotAllowedError("Only administrators can mark violations", model="User")

    def _notice(self, kind: str, title: str, reason: str, points: int, new_score: int) -> str:
        message = f"Your {kind} \"{title}\" was marked as a violation ({reason}); {points} credit points were deducted."
        if new_score < settings.BAN_THRESHOLD:
            message += f" Your credit score is below {settings.BAN_THRESHOLD}, so posting is suspended for {settings.BAN_HOURS} hours."
        return message

    def mark_post_violation(
        self,
        client: ForumClient,
        *,
        post_id: str,
        admin_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Mark a post; returns the mark, the author's new score and whether they are banned."""
        now = now or utcnow()
        reason = reason or DEFAULT_REASON
        self._require_admin(client, admin_id)

        if client.post_violation.get_mark(post_id=post_id, admin_id=admin_id):
            raise ActionNotAllowedError("You have already marked this post", model="PostViolation")

        post = client.post.find_unique_or_throw(where={"id": post_id}, include={"author": AUTHOR_CREDIT})
        author = post["author"]
        points = settings.POST_VIOLATION_POINTS
        new_score, ban_until = self.apply_penalty(author["credit_score"], author["ban_until"], points, now)

        violation, _, _, _ = client.transaction([
            client.post_violation.prepare(
                "create",
                data={"post_id": post_id, "admin_id": admin_id, "reason": reason, "points_deducted": points},
            ),
            client.post.prepare("update", where={"id": post_id}, data={"is_violation": True}),
            client.user.prepare(
                "update",
                where={"id": author["id"]},
                data={"credit_score": new_score, "ban_until": ban_until},
                select={"id": True},
            ),
            client.user_inbox.prepare(
                "create",
                data={
                    "user_id": author["id"],
                    "message": self._notice("post", post["title"], reason, points, new_score),
                    "type": "post_violation",
                    "related_post_id": post_id,
                },
            ),
        ])
        logger.info(f"Post {post_id} marked by admin {admin_id}; author {author['id']} credit -> {new_score}")
        return {
            "violation": violation,
            "new_credit_score": new_score,
            "banned": ban_until is not None and ban_until > now,
        }

    def mark_comment_violation(
        self,
        client: ForumClient,
        *,
        comment_id: str,
        admin_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Mark a comment; same bookkeeping as `mark_post_violation`."""
        now = now or utcnow()
        reason = reason or DEFAULT_REASON
        self._require_admin(client, admin_id)

        if client.comment_violation.get_mark(comment_id=comment_id, admin_id=admin_id):
            raise ActionNotAllowedError("You have already marked this comment", model="CommentViolation")

        comment = client.comment.find_unique_or_throw(where={"id": comment_id}, include={"author": AUTHOR_CREDIT})
        author = comment["author"]
        points = settings.COMMENT_VIOLATION_POINTS
        new_score, ban_until = self.apply_penalty(author["credit_score"], author["ban_until"], points, now)
        excerpt = comment["content"][:30]

        violation, _, _, _ = client.transaction([
            client.comment_violation.prepare(
                "create",
                data={"comment_id": comment_id, "admin_id": admin_id, "reason": reason, "points_deducted": points},
            ),
            client.comment.prepare("update", where={"id": comment_id}, data={"is_violation": True}),
            client.user.prepare(
                "update",
                where={"id": author["id"]},
                data={"credit_score": new_score, "ban_until": ban_until},
                select={"id": True},
            ),
            client.user_inbox.prepare(
                "create",
                data={
                    "user_id": author["id"],
                    "message": self._notice("comment", excerpt, reason, points, new_score),
                    "type": "comment_violation",
                    "related_post_id": comment["post_id"],
                    "related_comment_id": comment_id,
                },
            ),
        ])
        logger.info(f"Comment {comment_id} marked by admin {admin_id}; author {author['id']} credit -> {new_score}")
        return {
            "violation": violation,
            "new_credit_score": new_score,
            "banned": ban_until is not None and ban_until > now,
        }

    def list_comment_violations(self, client: ForumClient, comment_id: str) -> List[Dict[str, Any]]:
        """Marks on a comment, newest first, with the marking admin's username and email."""
        return client.comment_violation.find_many(
            where={"comment_id": comment_id},
            order_by={"created_at": "desc"},
            include={"admin": {"select": {"id": True, "username": True, "email": True}}},
        )


# Singleton instance
moderation_service = ModerationService()
