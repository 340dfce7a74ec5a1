import pytest

from forumdb import ForeignKeyConstraintError, QueryValidationError, RelationQuery


def ids(records):
    return [record["id"] for record in records]


class TestShaping:
    def test_select_and_omit(self, forum):
        assert forum.user.find_unique(where={"id": "u-bob"}, select={"id": True, "username": True}) == {
            "id": "u-bob",
            "username": "Bob",
        }
        user = forum.user.find_unique(where={"id": "u-bob"}, omit={"password": True})
        assert "password" not in user
        assert user["email"] == "bob@forum.example.com"

    def test_select_with_relation(self, forum):
        post = forum.post.find_unique(
            where={"id": "p2"},
            select={"title": True, "author": {"select": {"username": True}}},
        )
        assert post == {"title": "Exam schedule", "author": {"username": "Bob"}}

    def test_include_to_many_with_arguments(self, forum):
        alice = forum.user.find_unique(
            where={"id": "u-alice"},
            include={"posts": {"order_by": {"created_at": "desc"}, "take": 1, "select": {"id": True}}},
        )
        assert alice["posts"] == [{"id": "p3"}]
        assert alice["credit_score"] == 90

    def test_include_is_loaded_per_record(self, forum):
        users = forum.user.find_many(include={"posts": {"select": {"id": True}}})
        assert [(u["id"], ids(u["posts"])) for u in users] == [
            ("u-admin", []),
            ("u-alice", ["p1", "p3"]),
            ("u-bob", ["p2"]),
        ]

    def test_relation_counts(self, forum):
        categories = forum.category.list_with_post_counts()
        assert [(c["name"], c["_count"]) for c in categories] == [
            ("Campus life", {"posts": 1}),
            ("Study", {"posts": 2}),
        ]

        alice = forum.user.find_unique(
            where={"id": "u-alice"},
            select={"id": True, "_count": {"select": {"comments": {"where": {"post_id": "p1"}}}}},
        )
        assert alice == {"id": "u-alice", "_count": {"comments": 1}}

        counts = forum.user.find_unique(where={"id": "u-bob"}, include={"_count": True})["_count"]
        assert counts == {"posts": 1, "comments": 1, "inbox": 0, "post_violations": 0, "comment_violations": 0}

    def test_select_and_include_are_exclusive(self, forum):
        with pytest.raises(QueryValidationError) as exc:
            forum.post.find_many(select={"id": True}, include={"author": True})
        assert "either use `include` or `select`" in exc.value.reason

        with pytest.raises(QueryValidationError):
            forum.post.find_many(select={"id": True}, omit={"title": True})

    def test_malformed_shapes(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.find_many(include={"title": True})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(include={"author": {"take": 1}})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(select={"likes": True})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(include={"_count": {"select": {"author": True}}})

    def test_thread_view(self, forum):
        post = forum.post.get_with_comments("p1")
        assert post["author"] == {"id": "u-alice", "username": "alice", "avatar": None}
        assert ids(post["comments"]) == ["k1"]
        assert ids(post["comments"][0]["replies"]) == ["k2", "k3"]
        assert post["comments"][0]["author"]["username"] == "Bob"


class TestTraversal:
    def test_post_author_and_category(self, forum):
        ref = forum.post.record({"id": "p1"})
        assert ref.author().execute()["username"] == "alice"
        assert ref.category(select={"name": True}).execute() == {"name": "Study"}
        assert ref.fetch(select={"title": True}) == {"title": "Python tips"}

    def test_category_posts_builder(self, forum):
        posts = forum.category.record({"id": "c-study"}).posts().order_by({"created_at": "desc"})
        assert isinstance(posts, RelationQuery)
        assert ids(posts.execute()) == ["p2", "p1"]
        assert ids(posts.where({"author_id": "u-alice"}).execute()) == ["p1"]
        assert ids(list(posts.take(1))) == ["p2"]

    def test_builders_are_immutable(self, forum):
        base = forum.category.record({"id": "c-study"}).posts()
        narrowed = base.take(1).skip(1)
        assert base.args == {}
        assert narrowed.args == {"take": 1, "skip": 1}
        assert ids(narrowed.execute()) == ["p2"]

    def test_comment_thread(self, forum):
        assert forum.comment.record({"id": "k2"}).parent().execute()["id"] == "k1"
        assert forum.comment.record({"id": "k1"}).parent().execute() is None
        assert ids(forum.comment.list_replies("k1")) == ["k2", "k3"]
        assert list(forum.comment.record({"id": "k4"}).replies()) == []

    def test_missing_parent_record(self, forum):
        assert forum.post.record({"id": "ghost"}).author().execute() is None
        assert forum.category.record({"id": "ghost"}).posts().execute() == []

    def test_find_related(self, forum):
        first = forum.user.find_related(
            where={"id": "u-alice"}, relation="posts", args={"order_by": {"created_at": "asc"}, "take": 1}
        )
        assert ids(first) == ["p1"]
        with pytest.raises(QueryValidationError):
            forum.user.find_related(where={"id": "u-alice"}, relation="friends")

    def test_unknown_relation_or_argument(self, forum):
        ref = forum.post.record({"id": "p1"})
        with pytest.raises(AttributeError):
            ref.likes()
        with pytest.raises(TypeError):
            ref.relation("comments", limit=3)


class TestCommentThreads:
    def test_reply_on_the_same_post(self, forum):
        reply = forum.comment.create(data={"content": "me too", "author_id": "u-bob", "post_id": "p1", "parent_id": "k2"})
        assert reply["parent_id"] == "k2"

    def test_reply_must_share_the_post(self, forum):
        with pytest.raises(QueryValidationError) as exc:
            forum.comment.create(data={"content": "x", "author_id": "u-bob", "post_id": "p2", "parent_id": "k1"})
        assert exc.value.field == "parent_id"

    def test_parent_must_exist(self, forum):
        with pytest.raises(ForeignKeyConstraintError) as exc:
            forum.comment.create(data={"content": "x", "author_id": "u-bob", "post_id": "p1", "parent_id": "ghost"})
        assert exc.value.field == "parent_id"

    def test_no_self_reply_or_cycle(self, forum):
        with pytest.raises(QueryValidationError):
            forum.comment.update(where={"id": "k1"}, data={"parent_id": "k1"})
        with pytest.raises(QueryValidationError):
            forum.comment.update(where={"id": "k1"}, data={"parent_id": "k2"})
        assert forum.comment.find_unique(where={"id": "k1"})["parent_id"] is None

    def test_comment_with_replies_cannot_move(self, forum):
        with pytest.raises(QueryValidationError) as exc:
            forum.comment.update(where={"id": "k1"}, data={"post_id": "p2"})
        assert exc.value.field == "post_id"
        moved = forum.comment.update(where={"id": "k4"}, data={"post": {"connect": {"id": "p3"}}})
        assert moved["post_id"] == "p3"

    def test_bulk_update_checks_every_row(self, forum):
        with pytest.raises(QueryValidationError):
            forum.comment.update_many(where={"id": "k4"}, data={"parent_id": "k1"})
        assert forum.comment.update_many(where={"post_id": "p1", "parent_id": None}, data={"content": "edited"}) == 1

    def test_disconnect_parent(self, forum):
        detached = forum.comment.update(where={"id": "k2"}, data={"parent": {"disconnect": True}})
        assert detached["parent_id"] is None
        with pytest.raises(QueryValidationError):
            forum.comment.update(where={"id": "k2"}, data={"post": {"disconnect": True}})
