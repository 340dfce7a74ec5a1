"""Create every table and seed the default categories."""

from typing import Optional

from sqlalchemy.engine import Engine

from .client import ForumClient
from .database import Base
from . import models  # noqa: F401  registers every model on Base.metadata

DEFAULT_CATEGORIES = [
    {"name": "考研交流", "description": "分享考研经验、资料和备考心得，助力学子金榜题名。"},
    {"name": "游戏人生", "description": "探讨游戏攻略、分享游戏心得，畅聊游戏中的精彩瞬间。"},
    {"name": "情感树屋", "description": "分享情感故事、倾诉心灵感受，互相支持与鼓励。"},
    {"name": "风景美食", "description": "记录美丽风景、分享美食体验，探索生活中的美好。"},
]


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def seed_categories(client: ForumClient) -> int:
    """Insert the default categories when the table is empty; returns how many were added."""
    if client.category.count():
        return 0
    return client.category.create_many(data=DEFAULT_CATEGORIES, skip_duplicates=True)


def init_db(client: Optional[ForumClient] = None) -> int:
    client = client or ForumClient()
    create_tables(client.engine)
    return seed_categories(client)


def main():
    added = init_db()
    print("✅ Tables created successfully")
    print(f"✅ {added} default categories added")


if __name__ == "__main__":
    main()
