import pytest

from forumdb import QueryValidationError, RecordNotFoundError

from conftest import at


def ids(records):
    return [record["id"] for record in records]


class TestFilters:
    def test_string_modes(self, forum):
        assert ids(forum.user.find_many(where={"username": {"contains": "OB", "mode": "insensitive"}})) == ["u-bob"]
        assert ids(forum.user.find_many(where={"username": {"equals": "bob", "mode": "insensitive"}})) == ["u-bob"]
        assert ids(forum.user.find_many(where={"username": {"starts_with": "a"}})) == ["u-admin", "u-alice"]
        assert ids(forum.post.find_many(where={"title": {"ends_with": "spots"}})) == ["p3"]

    def test_like_wildcards_are_literal(self, forum):
        assert forum.post.find_many(where={"title": {"contains": "%"}}) == []
        assert forum.post.find_many(where={"title": {"contains": "_"}}) == []

    def test_lists_and_negation(self, forum):
        assert ids(forum.user.find_many(where={"credit_score": {"in": [70, 90]}})) == ["u-alice", "u-bob"]
        assert ids(forum.user.find_many(where={"credit_score": {"not_in": [70, 90]}})) == ["u-admin"]
        assert ids(forum.user.find_many(where={"credit_score": {"not": 100}})) == ["u-alice", "u-bob"]
        assert ids(forum.user.find_many(where={"credit_score": {"not": {"in": [90, 100]}}})) == ["u-bob"]
        assert forum.user.find_many(where={"credit_score": {"in": []}}) == []

    def test_ranges(self, forum):
        assert ids(forum.user.find_many(where={"credit_score": {"gt": 70, "lte": 90}})) == ["u-alice"]
        assert ids(forum.post.find_many(where={"created_at": {"gte": "2024-01-01T12:20:00Z"}})) == ["p2", "p3"]
        assert ids(forum.post.find_many(where={"created_at": {"lt": at(20)}})) == ["p1"]

    def test_null_membership(self, forum):
        assert ids(forum.user.find_many(where={"signature": None})) == ["u-admin", "u-alice"]
        assert ids(forum.user.find_many(where={"signature": {"not": None}})) == ["u-bob"]

    def test_composites(self, forum):
        either = {"OR": [{"credit_score": {"lt": 80}}, {"is_admin": True}]}
        assert ids(forum.user.find_many(where=either)) == ["u-admin", "u-bob"]
        assert ids(forum.user.find_many(where={"NOT": {"is_admin": True}})) == ["u-alice", "u-bob"]
        both = {"AND": [{"credit_score": {"gte": 80}}, {"is_admin": False}]}
        assert ids(forum.user.find_many(where=both)) == ["u-alice"]
        assert forum.user.find_many(where={"OR": []}) == []

    def test_to_many_relation_filters(self, forum):
        assert ids(forum.user.find_many(where={"posts": {"some": {"category_id": "c-life"}}})) == ["u-alice"]
        assert ids(forum.user.find_many(where={"posts": {"none": {}}})) == ["u-admin"]
        # every is vacuously true for users without posts
        assert ids(forum.user.find_many(where={"posts": {"every": {"category_id": "c-study"}}})) == ["u-admin", "u-bob"]

    def test_to_one_relation_filters(self, forum):
        assert ids(forum.post.find_many(where={"author": {"is": {"username": "Bob"}}})) == ["p2"]
        assert ids(forum.post.find_many(where={"author": {"credit_score": {"gte": 90}}})) == ["p1", "p3"]
        assert ids(forum.comment.find_many(where={"parent": None})) == ["k1", "k4"]
        assert ids(forum.comment.find_many(where={"parent": {"is_not": None}})) == ["k2", "k3"]
        assert ids(forum.comment.find_many(where={"parent": {"author_id": "u-bob"}})) == ["k2", "k3"]

    def test_invalid_filters_are_rejected(self, forum):
        with pytest.raises(QueryValidationError):
            forum.user.find_many(where={"karma": 1})
        with pytest.raises(QueryValidationError):
            forum.user.find_many(where={"credit_score": "high"})
        with pytest.raises(QueryValidationError):
            forum.user.find_many(where={"is_admin": {"gt": True}})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(where={"created_at": {"gt": "yesterday"}})
        with pytest.raises(QueryValidationError):
            forum.user.find_many(where={"posts": {"any": {}}})


class TestOrderingAndPagination:
    def test_order_by(self, forum):
        assert ids(forum.post.find_many(order_by={"created_at": "desc"})) == ["p3", "p2", "p1"]
        ordered = forum.post.find_many(order_by=[{"author_id": "asc"}, {"created_at": "desc"}])
        assert ids(ordered) == ["p3", "p1", "p2"]

    def test_nulls_placement(self, forum):
        nulls_last = forum.user.find_many(order_by={"signature": {"sort": "asc", "nulls": "last"}})
        assert ids(nulls_last) == ["u-bob", "u-admin", "u-alice"]
        assert ids(forum.user.find_many(order_by={"signature": "asc"}))[-1] == "u-bob"

    def test_invalid_order(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"created_at": "up"})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"author": "asc"})

    def test_order_by_relation_count(self, forum):
        most_discussed = forum.post.find_many(order_by={"comments": {"_count": "desc"}}, take=10)
        assert ids(most_discussed) == ["p1", "p2", "p3"]
        assert ids(forum.post.find_many(order_by={"comments": {"_count": "asc"}})) == ["p3", "p2", "p1"]
        assert ids(forum.user.find_many(order_by={"posts": {"_count": "desc"}})) == ["u-alice", "u-bob", "u-admin"]
        assert forum.post.count(order_by={"comments": {"_count": "desc"}}, take=2) == 2

    def test_order_by_related_field(self, forum):
        by_author = forum.post.find_many(order_by=[{"author": {"username": "asc"}}, {"created_at": "desc"}])
        assert ids(by_author) == ["p2", "p3", "p1"]
        by_parent = forum.comment.find_many(order_by={"parent": {"created_at": {"sort": "asc", "nulls": "last"}}})
        assert ids(by_parent) == ["k2", "k3", "k1", "k4"]

    def test_relation_ordering_pages_by_cursor(self, forum):
        order = {"comments": {"_count": "desc"}}
        assert ids(forum.post.find_many(order_by=order, cursor={"id": "p2"})) == ["p2", "p3"]
        assert ids(forum.post.find_many(order_by=order, cursor={"id": "p2"}, skip=1, take=-1)) == ["p1"]

    def test_relation_ordering_in_nested_lists(self, forum):
        alice = forum.user.find_unique(
            where={"id": "u-alice"},
            include={"posts": {"order_by": {"comments": {"_count": "asc"}}, "select": {"id": True}}},
        )
        assert alice["posts"] == [{"id": "p3"}, {"id": "p1"}]

    def test_invalid_relation_order(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"comments": {"content": "asc"}})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"author": {"karma": "asc"}})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"comments": {"_count": "up"}})
        with pytest.raises(QueryValidationError):
            forum.post.find_many(order_by={"author": {}})

    def test_skip_and_take(self, forum):
        assert ids(forum.post.find_many(order_by={"created_at": "asc"}, skip=1, take=1)) == ["p2"]
        assert ids(forum.post.find_many(order_by={"created_at": "asc"}, take=-1)) == ["p3"]
        with pytest.raises(QueryValidationError):
            forum.post.find_many(skip=-1)

    def test_cursor_forward(self, forum):
        page = forum.post.find_many(order_by={"created_at": "asc"}, cursor={"id": "p1"}, skip=1, take=2)
        assert ids(page) == ["p2", "p3"]
        assert ids(forum.post.find_many(order_by={"created_at": "asc"}, cursor={"id": "p2"})) == ["p2", "p3"]

    def test_cursor_backward(self, forum):
        assert ids(forum.post.find_many(order_by={"created_at": "asc"}, cursor={"id": "p3"}, take=-2)) == ["p2", "p3"]
        page = forum.post.find_many(order_by={"created_at": "asc"}, cursor={"id": "p3"}, skip=1, take=-2)
        assert ids(page) == ["p1", "p2"]

    def test_missing_cursor_returns_nothing(self, forum):
        assert forum.post.find_many(cursor={"id": "gone"}, take=5) == []

    def test_cursor_must_be_unique(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.find_many(cursor={"title": "Python tips"})

    def test_feed_pages_by_cursor(self, forum):
        first = forum.post.list_feed(take=2)
        assert ids(first) == ["p3", "p2"]
        assert first[0]["category"] == {"id": "c-life", "name": "Campus life"}
        assert first[1]["_count"] == {"comments": 1}
        assert ids(forum.post.list_feed(cursor="p2", take=2)) == ["p1"]

    def test_find_first(self, forum):
        assert forum.post.find_first(order_by={"created_at": "desc"})["id"] == "p3"
        assert forum.post.find_first(order_by={"created_at": "asc"}, take=-1)["id"] == "p3"
        assert forum.post.find_first(where={"title": "none"}) is None
        with pytest.raises(RecordNotFoundError):
            forum.post.find_first_or_throw(where={"title": "none"})

    def test_distinct(self, forum):
        first_per_author = forum.post.find_many(order_by={"created_at": "asc"}, distinct=["author_id"])
        assert ids(first_per_author) == ["p1", "p2"]
        assert ids(forum.post.find_many(order_by={"created_at": "asc"}, distinct="author_id", take=1)) == ["p1"]
        with pytest.raises(QueryValidationError):
            forum.post.find_many(distinct=["author"])

    def test_distinct_keeps_first_row_when_taking_from_the_end(self, forum):
        oldest_first = {"created_at": "asc"}
        assert ids(forum.post.find_many(order_by=oldest_first, distinct=["author_id"], take=-5)) == ["p1", "p2"]
        assert ids(forum.post.find_many(order_by=oldest_first, distinct=["author_id"], take=-1)) == ["p2"]
        assert ids(forum.comment.find_many(order_by=oldest_first, distinct="post_id", take=-1)) == ["k4"]


class TestCountAndAggregate:
    def test_count(self, forum):
        assert forum.post.count() == 3
        assert forum.post.count(where={"author_id": "u-alice"}) == 2
        assert forum.post.count(take=2) == 2
        assert forum.user.count(select={"_all": True, "signature": True}) == {"_all": 3, "signature": 1}
        assert forum.post.count(cursor={"id": "gone"}) == 0

    def test_aggregate(self, forum):
        result = forum.user.aggregate(
            _count=True,
            _avg={"credit_score": True},
            _sum={"credit_score": True},
            _min={"credit_score": True, "created_at": True},
            _max={"credit_score": True},
        )
        assert result["_count"] == 3
        assert result["_avg"]["credit_score"] == pytest.approx(260 / 3)
        assert result["_sum"] == {"credit_score": 260}
        assert result["_min"] == {"credit_score": 70, "created_at": at(0)}
        assert result["_max"] == {"credit_score": 100}

    def test_aggregate_respects_window(self, forum):
        top_two = forum.user.aggregate(order_by={"credit_score": "desc"}, take=2, _sum={"credit_score": True})
        assert top_two == {"_sum": {"credit_score": 190}}

    def test_aggregate_of_empty_set(self, forum):
        empty = forum.user.aggregate(where={"credit_score": {"gt": 1000}}, _count={"_all": True}, _avg={"credit_score": True})
        assert empty == {"_count": {"_all": 0}, "_avg": {"credit_score": None}}

    def test_numeric_only_aggregates(self, forum):
        with pytest.raises(QueryValidationError):
            forum.user.aggregate(_avg={"username": True})
        with pytest.raises(QueryValidationError):
            forum.user.aggregate(_max={"karma": True})


class TestGroupBy:
    def test_count_per_author(self, forum):
        rows = forum.post.group_by(by=["author_id"], _count=True, order_by={"author_id": "asc"})
        assert rows == [{"author_id": "u-alice", "_count": 2}, {"author_id": "u-bob", "_count": 1}]

    def test_average_per_role(self, forum):
        rows = forum.user.group_by(by="is_admin", _avg={"credit_score": True}, order_by={"is_admin": "asc"})
        assert rows == [
            {"is_admin": False, "_avg": {"credit_score": 80.0}},
            {"is_admin": True, "_avg": {"credit_score": 100.0}},
        ]

    def test_having_on_aggregate(self, forum):
        rows = forum.post.group_by(by=["author_id"], having={"author_id": {"_count": {"gt": 1}}}, _count=True)
        assert rows == [{"author_id": "u-alice", "_count": 2}]

    def test_order_by_aggregate_with_window(self, forum):
        rows = forum.comment.group_by(
            by=["post_id"], _count={"_all": True}, order_by={"_count": {"post_id": "desc"}}, take=1,
        )
        assert rows == [{"post_id": "p1", "_count": {"_all": 3}}]

    def test_order_by_field_must_be_grouped(self, forum):
        with pytest.raises(QueryValidationError) as exc:
            forum.post.group_by(by=["author_id"], order_by={"created_at": "asc"})
        assert exc.value.field == "created_at"
        assert "by-arguments" in exc.value.reason

    def test_having_field_must_be_grouped_or_aggregated(self, forum):
        with pytest.raises(QueryValidationError) as exc:
            forum.post.group_by(by=["author_id"], having={"title": "Python tips"})
        assert exc.value.field == "title"
        forum.post.group_by(by=["author_id"], having={"edit_count": {"_max": {"lt": 5}}})

    def test_take_needs_order_by(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.group_by(by=["author_id"], take=1)

    def test_by_is_required(self, forum):
        with pytest.raises(QueryValidationError):
            forum.post.group_by(by=[])
