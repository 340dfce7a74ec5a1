from datetime import datetime, timezone

import pytest

from forumdb import (
    ForeignKeyConstraintError,
    QueryValidationError,
    RecordNotFoundError,
    UniqueConstraintError,
)
from forumdb.schemas import CategoryCreate


def test_create_fills_defaults_and_reads_back(client):
    user = client.user.create(data={"email": "new@forum.example.com", "username": "newbie", "password": "h"})

    assert user["credit_score"] == 100
    assert user["is_admin"] is False
    assert user["ban_until"] is None
    assert isinstance(user["created_at"], datetime)
    assert client.user.find_unique(where={"id": user["id"]}) == user


def test_create_accepts_pydantic_model(client):
    category = client.category.create(data=CategoryCreate(name="Music", description="bands"))
    assert client.category.get_by_name("Music")["id"] == category["id"]


def test_create_normalizes_aware_datetimes_to_utc(client):
    aware = datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc)
    user = client.user.create(data={
        "email": "tz@forum.example.com", "username": "tz", "password": "h", "ban_until": aware,
    })
    assert user["ban_until"] == datetime(2024, 5, 1, 20, 0)


def test_create_rejects_unknown_and_invalid_fields(client):
    with pytest.raises(QueryValidationError) as exc:
        client.user.create(data={"email": "x@forum.example.com", "username": "x", "password": "h", "karma": 3})
    assert exc.value.field == "karma"

    with pytest.raises(QueryValidationError) as exc:
        client.user.create(data={"email": "not-an-email", "username": "y", "password": "h"})
    assert exc.value.field == "email"

    with pytest.raises(QueryValidationError):
        client.post.create(data={"title": "t" * 501, "content": "c", "author_id": "a", "category_id": "b"})


@pytest.mark.parametrize("email", ["not an@@email", "@forum.example.com", "alice@", "alice@@forum.example.com"])
def test_malformed_emails_are_rejected(forum, email):
    with pytest.raises(QueryValidationError) as exc:
        forum.user.create(data={"email": email, "username": "mal", "password": "h"})
    assert exc.value.field == "email"

    with pytest.raises(QueryValidationError):
        forum.user.update(where={"id": "u-bob"}, data={"email": email})
    assert forum.user.count(where={"username": "mal"}) == 0
    assert forum.user.find_unique(where={"id": "u-bob"})["email"] == "bob@forum.example.com"


def test_required_field_cannot_be_set_to_null(forum):
    with pytest.raises(QueryValidationError) as exc:
        forum.user.update(where={"id": "u-bob"}, data={"credit_score": None})
    assert exc.value.field == "credit_score"


def test_unique_violations_report_their_fields(forum):
    with pytest.raises(UniqueConstraintError) as exc:
        forum.user.create(data={"email": "alice@forum.example.com", "username": "alice2", "password": "h"})
    assert exc.value.fields == ("email",)
    assert exc.value.model == "User"
    assert exc.value.action == "create"

    with pytest.raises(UniqueConstraintError) as exc:
        forum.user.create(data={"email": "other@forum.example.com", "username": "alice", "password": "h"})
    assert exc.value.fields == ("username",)

    with pytest.raises(UniqueConstraintError) as exc:
        forum.category.create(data={"name": "Study"})
    assert exc.value.fields == ("name",)


def test_violation_compound_key_is_unique(forum):
    forum.post_violation.create(data={"post_id": "p1", "admin_id": "u-admin", "reason": "spam", "points_deducted": 5})
    with pytest.raises(UniqueConstraintError) as exc:
        forum.post_violation.create(
            data={"post_id": "p1", "admin_id": "u-admin", "reason": "again", "points_deducted": 5}
        )
    assert exc.value.fields == ("post_id", "admin_id")

    forum.comment_violation.create(
        data={"comment_id": "k1", "admin_id": "u-admin", "reason": "rude", "points_deducted": 5}
    )
    with pytest.raises(UniqueConstraintError):
        forum.comment_violation.create(
            data={"comment_id": "k1", "admin_id": "u-admin", "reason": "rude", "points_deducted": 5}
        )

    mark = forum.post_violation.find_unique(where={"post_id_admin_id": {"post_id": "p1", "admin_id": "u-admin"}})
    assert mark["reason"] == "spam"
    assert forum.post_violation.get_mark(post_id="p1", admin_id="u-bob") is None


def test_find_unique_requires_a_unique_key(forum):
    with pytest.raises(QueryValidationError):
        forum.user.find_unique(where={"credit_score": 90})
    # extra non-unique filters are allowed next to a unique key
    assert forum.user.find_unique(where={"email": "bob@forum.example.com", "is_admin": True}) is None
    assert forum.user.find_unique(where={"email": "bob@forum.example.com", "is_admin": False})["id"] == "u-bob"


def test_find_unique_or_throw(forum):
    with pytest.raises(RecordNotFoundError) as exc:
        forum.post.find_unique_or_throw(where={"id": "missing"})
    assert exc.value.code == "not_found"
    assert exc.value.model == "Post"


def test_missing_foreign_key_is_rejected(forum):
    with pytest.raises(ForeignKeyConstraintError):
        forum.post.create(data={"title": "t", "content": "c", "author_id": "nobody", "category_id": "c-study"})
    assert forum.post.count() == 3


def test_connect_resolves_relation_by_unique_key(forum):
    post = forum.post.create(
        data={
            "title": "Connected",
            "content": "c",
            "author": {"connect": {"email": "bob@forum.example.com"}},
            "category": {"connect": {"name": "Campus life"}},
        },
        include={"author": {"select": {"username": True}}},
    )
    assert post["author_id"] == "u-bob"
    assert post["category_id"] == "c-life"
    assert post["author"] == {"username": "Bob"}


def test_connect_to_missing_record_fails(forum):
    with pytest.raises(RecordNotFoundError) as exc:
        forum.post.create(data={
            "title": "t", "content": "c",
            "author": {"connect": {"id": "ghost"}},
            "category_id": "c-study",
        })
    assert "author" in exc.value.message


def test_update_with_atomic_number_operations(forum):
    assert forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"decrement": 5}})["credit_score"] == 65
    assert forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"increment": 10}})["credit_score"] == 75
    assert forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"multiply": 2}})["credit_score"] == 150
    assert forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"divide": 4}})["credit_score"] == 37
    assert forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"set": 1}})["credit_score"] == 1


def test_atomic_operations_are_only_for_numbers(forum):
    with pytest.raises(QueryValidationError):
        forum.user.update(where={"id": "u-bob"}, data={"username": {"increment": 1}})
    with pytest.raises(QueryValidationError):
        forum.user.update(where={"id": "u-bob"}, data={"credit_score": {"divide": 0}})


def test_update_missing_record(forum):
    with pytest.raises(RecordNotFoundError) as exc:
        forum.user.update(where={"id": "ghost"}, data={"signature": "x"})
    assert "Record to update not found" in exc.value.message


def test_update_to_taken_unique_value(forum):
    with pytest.raises(UniqueConstraintError):
        forum.user.update(where={"id": "u-bob"}, data={"email": "alice@forum.example.com"})
    assert forum.user.find_unique(where={"id": "u-bob"})["email"] == "bob@forum.example.com"


def test_update_touches_updated_at(forum):
    before = forum.category.find_unique(where={"id": "c-life"})
    after = forum.category.update(where={"id": "c-life"}, data={"description": "campus"})
    assert after["description"] == "campus"
    assert after["updated_at"] >= before["updated_at"]


def test_upsert_creates_then_updates(client):
    args = dict(
        where={"email": "up@forum.example.com"},
        create={"email": "up@forum.example.com", "username": "up", "password": "h"},
        update={"credit_score": {"increment": 1}},
    )
    assert client.user.upsert(**args)["credit_score"] == 100
    assert client.user.upsert(**args)["credit_score"] == 101
    assert client.user.count() == 1


def test_delete_returns_the_deleted_record(forum):
    removed = forum.comment.delete(where={"id": "k4"}, select={"id": True, "content": True})
    assert removed == {"id": "k4", "content": "when?"}
    assert forum.comment.find_unique(where={"id": "k4"}) is None

    with pytest.raises(RecordNotFoundError) as exc:
        forum.comment.delete(where={"id": "k4"})
    assert "Record to delete does not exist" in exc.value.message


def test_create_many_is_all_or_nothing(client):
    rows = [
        {"email": "a@forum.example.com", "username": "a", "password": "h"},
        {"email": "a@forum.example.com", "username": "b", "password": "h"},
    ]
    with pytest.raises(UniqueConstraintError):
        client.user.create_many(data=rows)
    assert client.user.count() == 0


def test_create_many_skip_duplicates(forum):
    created = forum.category.create_many(
        data=[{"name": "Study"}, {"name": "Games"}, {"name": "Games"}, {"name": "Food"}],
        skip_duplicates=True,
    )
    assert created == 2
    assert forum.category.count() == 4


def test_create_many_and_return_includes_to_one_relations_only(forum):
    posts = forum.post.create_many_and_return(
        data=[
            {"id": "p8", "title": "a", "content": "a", "author_id": "u-bob", "category_id": "c-life"},
            {"id": "p9", "title": "b", "content": "b", "author_id": "u-alice", "category_id": "c-life"},
        ],
        include={"author": {"select": {"username": True}}},
    )
    assert [p["author"]["username"] for p in posts] == ["Bob", "alice"]

    with pytest.raises(QueryValidationError):
        forum.post.create_many_and_return(
            data=[{"title": "c", "content": "c", "author_id": "u-bob", "category_id": "c-life"}],
            include={"comments": True},
        )


def test_update_many_and_delete_many_with_limit(forum):
    assert forum.post.update_many(where={"author_id": "u-alice"}, data={"is_violation": True}) == 2
    assert forum.post.count(where={"is_violation": True}) == 2

    assert forum.post.update_many(data={"edit_count": {"increment": 1}}, limit=1) == 1
    assert forum.post.count(where={"edit_count": 1}) == 1

    assert forum.post.update_many(where={"title": "nothing"}, data={"is_violation": False}) == 0

    assert forum.comment.delete_many(where={"post_id": "p2"}) == 1
    assert forum.comment.delete_many(where={"post_id": "p1", "parent_id": {"not": None}}, limit=1) == 1
    assert forum.comment.count() == 2

    with pytest.raises(QueryValidationError):
        forum.comment.delete_many(limit=-1)


def test_update_many_and_return(forum):
    updated = forum.user.update_many_and_return(
        where={"credit_score": {"lt": 100}},
        data={"credit_score": {"increment": 5}},
        select={"id": True, "credit_score": True},
    )
    assert updated == [{"id": "u-alice", "credit_score": 95}, {"id": "u-bob", "credit_score": 75}]

    with pytest.raises(QueryValidationError):
        forum.user.update_many_and_return(data={"signature": "x"}, include={"posts": True})


def test_restricted_and_cascading_deletes(forum):
    with pytest.raises(ForeignKeyConstraintError):
        forum.category.delete(where={"id": "c-study"})
    assert forum.category.count() == 2

    forum.post.delete(where={"id": "p1"})
    assert forum.comment.count(where={"post_id": "p1"}) == 0

    forum.user.delete(where={"id": "u-alice"})
    assert forum.post.count() == 1
    assert forum.comment.count() == 0


def test_deleting_a_comment_removes_its_replies(forum):
    forum.comment.delete(where={"id": "k1"})
    assert forum.comment.find_many(where={"post_id": "p1"}) == []
