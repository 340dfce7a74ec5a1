"""Scheduled credit-score maintenance."""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..client import ForumClient
from ..config import settings
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Weekly reset runs on Monday between 00:00 and 01:59 China time
CHINA_UTC_OFFSET = timedelta(hours=8)
RESET_WINDOW_LAST_HOUR = 1


class ScoreTasksService:
    def handle_unbanned_user_scores(self, client: ForumClient, now: Optional[datetime] = None) -> int:
        """Lift expired bans: score goes to UNBAN_CREDIT_SCORE, ban_until is cleared, user is told.

        Returns the number of users processed.
        """
        now = now or utcnow()
        users = client.user.find_many(
            where={"ban_until": {"lt": now}},
            select={"id": True, "credit_score": True},
        )
        for user in users:
            client.transaction([
                client.user.prepare(
                    "update",
                    where={"id": user["id"]},
                    data={"credit_score": settings.UNBAN_CREDIT_SCORE, "ban_until": None},
                    select={"id": True},
                ),
                client.user_inbox.prepare(
                    "create",
                    data={
                        "user_id": user["id"],
                        "message": (
                            f"Your account is no longer suspended and your credit score is now "
                            f"{settings.UNBAN_CREDIT_SCORE}. Please follow the community rules."
                        ),
                        "type": "system",
                    },
                ),
            ])
        if users:
            logger.info(f"Lifted {len(users)} expired ban(s)")
        return len(users)

    def reset_all_user_credit_scores(self, client: ForumClient, now: Optional[datetime] = None) -> int:
        """Weekly reset of every unbanned user to RESET_CREDIT_SCORE.

        Only acts on Monday 00:00-01:59 China time (UTC+8); returns 0 otherwise.
        """
        now = now or utcnow()
        china_now = now + CHINA_UTC_OFFSET
        if china_now.weekday() != 0:
            logger.debug("Not Monday in China time, skipping credit score reset")
            return 0
        if china_now.hour > RESET_WINDOW_LAST_HOUR:
            logger.debug(f"China time is {china_now.hour}:00, outside the reset window")
            return 0

        count = client.user.update_many(
            where={"ban_until": None, "credit_score": {"not": settings.RESET_CREDIT_SCORE}},
            data={"credit_score": settings.RESET_CREDIT_SCORE},
        )
        logger.info(f"Reset credit score of {count} user(s) to {settings.RESET_CREDIT_SCORE}")
        return count

    def run_all_tasks(self, client: ForumClient, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or utcnow()
        return {
            "unbanned_users": self.handle_unbanned_user_scores(client, now),
            "reset_users": self.reset_all_user_credit_scores(client, now),
        }


# Singleton instance
score_tasks_service = ScoreTasksService()
