from datetime import datetime, timedelta

import pytest

from forumdb import ForumClient
from forumdb import models  # noqa: F401
from forumdb.database import Base, make_engine

T0 = datetime(2024, 1, 1, 12, 0, 0)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
def engine():
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def client(engine):
    return ForumClient(engine=engine, log=["warn", "error"])


@pytest.fixture
def forum(client):
    """Three users, two categories, three posts and a small comment thread."""
    client.user.create_many(data=[
        {"id": "u-admin", "email": "admin@forum.example.com", "username": "admin", "password": "x",
         "is_admin": True, "created_at": at(0)},
        {"id": "u-alice", "email": "alice@forum.example.com", "username": "alice", "password": "x",
         "credit_score": 90, "created_at": at(1)},
        {"id": "u-bob", "email": "bob@forum.example.com", "username": "Bob", "password": "x",
         "credit_score": 70, "signature": "hi", "created_at": at(2)},
    ])
    client.category.create_many(data=[
        {"id": "c-study", "name": "Study", "description": "exam notes"},
        {"id": "c-life", "name": "Campus life"},
    ])
    client.post.create_many(data=[
        {"id": "p1", "title": "Python tips", "content": "use pytest", "author_id": "u-alice",
         "category_id": "c-study", "created_at": at(10)},
        {"id": "p2", "title": "Exam schedule", "content": "june", "author_id": "u-bob",
         "category_id": "c-study", "created_at": at(20)},
        {"id": "p3", "title": "Lunch spots", "content": "canteen", "author_id": "u-alice",
         "category_id": "c-life", "created_at": at(30)},
    ])
    client.comment.create_many(data=[
        {"id": "k1", "content": "great", "author_id": "u-bob", "post_id": "p1", "created_at": at(11)},
        {"id": "k2", "content": "thanks", "author_id": "u-alice", "post_id": "p1", "parent_id": "k1",
         "created_at": at(12)},
        {"id": "k3", "content": "agreed", "author_id": "u-admin", "post_id": "p1", "parent_id": "k1",
         "created_at": at(13)},
        {"id": "k4", "content": "when?", "author_id": "u-alice", "post_id": "p2", "created_at": at(21)},
    ])
    return client
