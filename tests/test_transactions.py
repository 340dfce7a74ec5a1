import threading
import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool

from forumdb import (
    ForumClient,
    QueryValidationError,
    TransactionAbortedError,
    TransactionClosedError,
    TransactionStartError,
    TransactionTimeoutError,
    UniqueConstraintError,
)


def new_user(name):
    return {"email": f"{name}@forum.example.com", "username": name, "password": "h"}


class TestBatch:
    def test_results_come_back_in_order(self, forum):
        created, count, updated = forum.transaction([
            forum.user.prepare("create", data=new_user("carol")),
            forum.post.prepare("count", where={"author_id": "u-alice"}),
            forum.user.prepare("update", where={"id": "u-bob"}, data={"credit_score": {"increment": 1}}),
        ])
        assert created["username"] == "carol"
        assert count == 2
        assert updated["credit_score"] == 71

    def test_failure_rolls_back_every_operation(self, forum):
        with pytest.raises(UniqueConstraintError):
            forum.transaction([
                forum.user.prepare("create", data=new_user("carol")),
                forum.user.prepare("update", where={"id": "u-bob"}, data={"credit_score": 0}),
                forum.user.prepare("create", data=new_user("alice")),
            ])
        assert forum.user.find_unique(where={"username": "carol"}) is None
        assert forum.user.find_unique(where={"id": "u-bob"})["credit_score"] == 70

    def test_only_prepared_operations_are_accepted(self, client):
        with pytest.raises(QueryValidationError):
            client.transaction([client.user.count()])

    def test_prepare_checks_arguments(self, client):
        with pytest.raises(QueryValidationError):
            client.user.prepare("create", payload={})
        with pytest.raises(QueryValidationError):
            client.user.prepare("truncate")

    def test_prepared_operation_runs_on_its_own(self, forum):
        pending = forum.post.prepare("count", where={"category_id": "c-study"})
        assert pending.model == "Post"
        assert pending.execute() == 2


class TestInteractive:
    def test_commit_returns_callback_result(self, forum):
        def move_post(tx):
            post = tx.post.update(where={"id": "p3"}, data={"category": {"connect": {"name": "Study"}}})
            tx.category.delete(where={"id": "c-life"})
            return post["category_id"]

        assert forum.transaction(move_post) == "c-study"
        assert forum.category.count() == 1

    def test_reads_see_earlier_writes(self, client):
        def write_then_read(tx):
            tx.user.create(data=new_user("dave"))
            return tx.user.count()

        assert client.transaction(write_then_read) == 1

    def test_exception_rolls_back_and_propagates(self, client):
        error = ValueError("stop")

        def fail(tx):
            tx.user.create(data=new_user("erin"))
            raise error

        with pytest.raises(ValueError) as exc:
            client.transaction(fail)
        assert exc.value is error
        assert client.user.count() == 0

    def test_timeout_rolls_back(self, client):
        def slow(tx):
            tx.user.create(data=new_user("frank"))
            time.sleep(0.05)
            return "done"

        with pytest.raises(TransactionTimeoutError):
            client.transaction(slow, timeout=1)
        assert client.user.count() == 0

    def test_operation_after_timeout_is_rejected(self, client):
        def slow(tx):
            time.sleep(0.05)
            tx.user.create(data=new_user("gina"))

        with pytest.raises(TransactionTimeoutError):
            client.transaction(slow, timeout=10)
        assert client.user.count() == 0

    def test_handle_is_closed_afterwards(self, client):
        handles = []
        client.transaction(lambda tx: handles.append(tx))
        assert handles[0].closed
        with pytest.raises(TransactionClosedError):
            handles[0].user.count()

    def test_start_deadline(self, client):
        with pytest.raises(TransactionStartError):
            client.transaction(lambda tx: None, max_wait=0)

    def test_isolation_levels(self, client):
        assert client.transaction(lambda tx: tx.user.count(), isolation_level="Serializable") == 0
        with pytest.raises(QueryValidationError):
            client.transaction(lambda tx: None, isolation_level="Chaos")

    def test_transaction_client_has_no_nested_transactions(self, client):
        assert client.transaction(lambda tx: hasattr(tx, "transaction")) is False

    def test_failed_statement_aborts_the_transaction(self, forum):
        seen = []

        def keep_going(tx):
            try:
                tx.user.create(data=new_user("alice"))
            except UniqueConstraintError:
                seen.append(tx.aborted)
            return tx.user.count()

        with pytest.raises(TransactionAbortedError) as exc:
            forum.transaction(keep_going)
        assert seen == [True]
        assert "UniqueConstraintError" in str(exc.value)

    def test_swallowed_failure_still_rolls_back(self, forum):
        def swallow(tx):
            tx.user.create(data=new_user("carol"))
            try:
                tx.user.create(data=new_user("alice"))
            except UniqueConstraintError:
                pass
            return "ok"

        with pytest.raises(TransactionAbortedError):
            forum.transaction(swallow)
        assert forum.user.find_unique(where={"username": "carol"}) is None

    def test_validation_errors_do_not_abort(self, forum):
        def retry(tx):
            try:
                tx.user.create(data={"username": "carol"})
            except QueryValidationError:
                pass
            return tx.user.create(data=new_user("carol"))["username"]

        assert forum.transaction(retry) == "carol"


@pytest.fixture
def one_connection_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pool.db'}",
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=2,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


class TestStartDeadline:
    def test_gives_up_after_max_wait_while_the_pool_is_busy(self, one_connection_engine):
        client = ForumClient(engine=one_connection_engine, log=["error"])
        held = one_connection_engine.connect()
        try:
            started = time.perf_counter()
            with pytest.raises(TransactionStartError) as exc:
                client.transaction(lambda tx: "never", max_wait=100)
            assert time.perf_counter() - started < 1.0
            assert exc.value.max_wait_ms == 100
        finally:
            held.close()

    def test_starts_when_the_connection_frees_up_in_time(self, one_connection_engine):
        client = ForumClient(engine=one_connection_engine, log=["error"])
        held = one_connection_engine.connect()
        threading.Timer(0.05, held.close).start()
        assert client.transaction(lambda tx: "ran", max_wait=1500) == "ran"

    def test_abandoned_checkout_goes_back_to_the_pool(self, one_connection_engine):
        client = ForumClient(engine=one_connection_engine, log=["error"])
        held = one_connection_engine.connect()
        with pytest.raises(TransactionStartError):
            client.transaction(lambda tx: None, max_wait=50)
        held.close()
        assert client.transaction(lambda tx: "again", max_wait=1500) == "again"
