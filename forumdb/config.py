from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Forum data-access settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./forum.db"
    DEBUG: bool = False

    # Client logging: any of info, query, warn, error
    LOG_LEVELS: str = "warn,error"
    # pretty | colorless | minimal
    ERROR_FORMAT: str = "colorless"

    # Interactive transactions (milliseconds)
    TRANSACTION_MAX_WAIT_MS: int = 2000
    TRANSACTION_TIMEOUT_MS: int = 5000
    TRANSACTION_ISOLATION_LEVEL: Optional[str] = None

    # Moderation & credit score
    BAN_THRESHOLD: int = 80
    BAN_HOURS: int = 24
    POST_VIOLATION_POINTS: int = 5
    COMMENT_VIOLATION_POINTS: int = 5
    UNBAN_CREDIT_SCORE: int = 80
    RESET_CREDIT_SCORE: int = 100
    MAX_EDIT_COUNT: int = 2
    RESTORED_CREDIT_SCORE: int = 90
    HOT_POSTS_LIMIT: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def log_levels(self) -> List[str]:
        return [level.strip().lower() for level in self.LOG_LEVELS.split(",") if level.strip()]

# Create settings instance
settings = Settings()
