"""
tests/unit/test_postgres_store.py
──────────────────────────────────────────────────────────────────────────────
Unit tests for PostgresQuestionStore connection handling.

The psycopg2 pool is replaced by ShrinkingPool, which behaves like a
ThreadedConnectionPool with minconn=1: surplus connections are closed when
they are returned, and the next checkout gets a brand-new connection.
register_vector is patched, so no database is needed.
"""
from __future__ import annotations

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import patch

import psycopg2
import pytest

from mathtutor.adapters.postgres_db import PostgresQuestionStore
from mathtutor.domain.exceptions import FailureKind, TutorError

_REGISTER = "mathtutor.adapters.postgres_db.register_vector"


# ── Fakes ──────────────────────────────────────────────────────────────────

class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self.description = None
        self._rows: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params):
        conn = self._conn
        conn.statements.append((sql, conn.autocommit, conn.vector_registered))
        if conn.fail_next:
            conn.fail_next = False
            raise psycopg2.OperationalError("server closed the connection")
        self.description = [("col",)]
        self._rows = list(conn.rows)

    def fetchall(self):
        return self._rows


class FakeConnection:
    def __init__(self) -> None:
        self.autocommit = False
        self.vector_registered = False
        self.closed = False
        self.fail_next = False
        self.rows: list[dict] = [{"ok": 1}]
        self.statements: list[tuple] = []

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)


class ShrinkingPool:
    """Keeps at most one idle connection; extras are closed on putconn."""

    def __init__(self) -> None:
        self.closed = False
        self.idle: list[FakeConnection] = []
        self.created: list[FakeConnection] = []
        self._lock = threading.Lock()

    def getconn(self) -> FakeConnection:
        with self._lock:
            if self.idle:
                return self.idle.pop()
            conn = FakeConnection()
            self.created.append(conn)
            return conn

    def putconn(self, conn: FakeConnection, close: bool = False) -> None:
        with self._lock:
            if close or self.idle:
                conn.closed = True
            else:
                self.idle.append(conn)


def _mark_registered(conn: FakeConnection) -> None:
    conn.vector_registered = True


@pytest.fixture
def pool():
    return ShrinkingPool()


@pytest.fixture
def store(settings, pool):
    s = PostgresQuestionStore(settings)
    s._pool = pool
    return s


# ── Connection setup ───────────────────────────────────────────────────────

class TestCheckout:
    def test_new_connection_is_prepared(self, store, pool):
        with patch(_REGISTER, side_effect=_mark_registered):
            conn = store._checkout(pool)
        assert conn.autocommit is True
        assert conn.vector_registered is True

    def test_replacement_after_close_is_prepared(self, store, pool):
        """Overlapping checkouts shrink the pool; every later one is still set up."""
        with patch(_REGISTER, side_effect=_mark_registered) as register:
            for _ in range(20):
                first = store._checkout(pool)
                second = store._checkout(pool)
                assert first.autocommit and first.vector_registered
                assert second.autocommit and second.vector_registered
                pool.putconn(first)
                pool.putconn(second)  # closed: pool already holds one idle

        assert any(c.closed for c in pool.created)
        assert register.call_count == len(pool.created)

    def test_idle_connection_not_prepared_twice(self, store, pool):
        with patch(_REGISTER, side_effect=_mark_registered) as register:
            for _ in range(5):
                store.ping()
        assert len(pool.created) == 1
        assert register.call_count == 1

    def test_registration_failure_discards_connection(self, store, pool):
        with patch(_REGISTER, side_effect=psycopg2.ProgrammingError("vector type not found")):
            with pytest.raises(TutorError) as exc_info:
                store._checkout(pool)
        assert exc_info.value.kind is FailureKind.STORAGE_FAILED
        assert pool.created[0].closed
        assert pool.idle == []


class TestExecute:
    def test_concurrent_statements_run_on_prepared_connections(self, store, pool):
        with patch(_REGISTER, side_effect=_mark_registered):
            with ThreadPoolExecutor(max_workers=4) as executor:
                list(executor.map(lambda _: store.ping(), range(50)))

        statements = [s for c in pool.created for s in c.statements]
        assert len(statements) == 50
        assert all(autocommit and registered for _, autocommit, registered in statements)

    def test_operational_error_reconnects_once(self, store, pool):
        with patch(_REGISTER, side_effect=_mark_registered):
            store.ping()
            pool.idle[0].fail_next = True
            store.ping()
        broken, fresh = pool.created
        assert broken.closed
        assert fresh.autocommit and fresh.vector_registered
        assert len(fresh.statements) == 1

    def test_insert_returns_record_with_float_vector(self, store, pool, settings):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        row = {
            "id": uuid.uuid4(), "question": "q", "answer": "a",
            "embedding": [1] * settings.embed_dim,
            "created_at": now, "updated_at": now,
        }
        with patch(_REGISTER, side_effect=_mark_registered):
            conn = store._checkout(pool)
            conn.rows = [row]
            pool.putconn(conn)
            record = store.insert("q", "a", [0.5] * settings.embed_dim)
        assert record.id == row["id"]
        assert record.embedding == [1.0] * settings.embed_dim
        assert all(isinstance(x, float) for x in record.embedding)

    def test_wrong_dimensions_never_reach_the_database(self, store, pool):
        with pytest.raises(TutorError) as exc_info:
            store.insert("q", "a", [0.1, 0.2])
        assert exc_info.value.kind is FailureKind.VALIDATION_FAILED
        assert pool.created == []

    def test_malformed_id_is_not_found(self, store, pool):
        with pytest.raises(TutorError) as exc_info:
            store.get("not-a-uuid")
        assert exc_info.value.kind is FailureKind.NOT_FOUND
        assert pool.created == []
