"""
adapters/postgres_db.py
──────────────────────────────────────────────────────────────────────────────
Implements QuestionStorePort using psycopg2 + pgvector.

Database layout (schema.sql):
  Table : questions
  Cols  : id uuid PK default gen_random_uuid(), question text, answer text,
          embedding vector(1536), created_at, updated_at

Connection management:
  - A psycopg2 ThreadedConnectionPool is opened lazily and shared by every
    caller: FastAPI's threadpool and the batch pipelines' worker threads.
  - Each statement runs on its own pooled connection in autocommit mode, so
    every insert is an independent atomic unit.
  - On OperationalError the connection is discarded and one retry is made.

Error translation (all raised as TutorError):
  UniqueViolation            → DUPLICATE_ENTRY
  other IntegrityError       → VALIDATION_FAILED
  wrong-length vector        → VALIDATION_FAILED (never written)
  anything else from psycopg2 → STORAGE_FAILED
"""
from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Optional

import psycopg2
import psycopg2.errors
import psycopg2.extras
import psycopg2.pool
from pgvector.psycopg2 import register_vector

from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.domain.models import QuestionRecord, QuestionSummary

logger = logging.getLogger(__name__)

_RECORD_COLS = "id, question, answer, embedding, created_at, updated_at"
_SUMMARY_COLS = "id, question, answer, created_at"


class PostgresQuestionStore:
    """psycopg2 + pgvector implementation of QuestionStorePort.

    Injected into QuestionService and BatchImportPipeline via
    services/container.py.
    """

    def __init__(self, settings: Settings) -> None:
        self._dsn = settings.db_dsn
        self._dim = settings.embed_dim
        self._pool_min = settings.db_pool_min
        self._pool_max = settings.db_pool_max
        self._pool: Any = None
        self._pool_lock = threading.Lock()
        logger.debug("PostgresQuestionStore ready | dsn=%s", self._dsn)

    # ── QuestionStorePort implementation ───────────────────────────────────

    def ping(self) -> None:
        """Pre-flight connectivity check."""
        try:
            self._execute("SELECT 1 AS ok", ())
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Database health check failed: {exc}"
            ) from exc

    def insert(
        self,
        question: str,
        answer: str,
        embedding: list[float],
    ) -> QuestionRecord:
        self._check_dimensions(embedding)
        sql = f"""
            INSERT INTO questions (question, answer, embedding)
            VALUES (%s, %s, %s::vector)
            RETURNING {_RECORD_COLS}
        """
        try:
            rows = self._execute(sql, (question, answer, list(embedding)))
        except psycopg2.errors.UniqueViolation as exc:
            raise TutorError(FailureKind.DUPLICATE_ENTRY) from exc
        except psycopg2.IntegrityError as exc:
            raise TutorError(
                FailureKind.VALIDATION_FAILED, "Database constraint violation"
            ) from exc
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Database operation failed: {exc}"
            ) from exc
        record = _to_record(rows[0])
        logger.info("Inserted question | id=%s", record.id)
        return record

    def find_all(self, limit: int, offset: int) -> list[QuestionSummary]:
        sql = f"""
            SELECT {_SUMMARY_COLS}
            FROM   questions
            ORDER  BY created_at ASC
            LIMIT  %s OFFSET %s
        """
        try:
            rows = self._execute(sql, (limit, offset))
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Failed to fetch embeddings: {exc}"
            ) from exc
        return [QuestionSummary(**row) for row in rows]

    def get(self, question_id: str) -> QuestionRecord:
        if _parse_uuid(question_id) is None:
            raise TutorError(FailureKind.NOT_FOUND)
        sql = f"SELECT {_RECORD_COLS} FROM questions WHERE id = %s"
        try:
            rows = self._execute(sql, (question_id,))
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Failed to fetch embedding: {exc}"
            ) from exc
        if not rows:
            raise TutorError(FailureKind.NOT_FOUND)
        return _to_record(rows[0])

    def update(
        self,
        question_id: str,
        question: str,
        answer: str,
        embedding: list[float],
    ) -> QuestionRecord:
        if _parse_uuid(question_id) is None:
            raise TutorError(FailureKind.NOT_FOUND)
        self._check_dimensions(embedding)
        sql = f"""
            UPDATE questions
            SET    question = %s,
                   answer = %s,
                   embedding = %s::vector,
                   updated_at = now()
            WHERE  id = %s
            RETURNING {_RECORD_COLS}
        """
        try:
            rows = self._execute(sql, (question, answer, list(embedding), question_id))
        except psycopg2.errors.UniqueViolation as exc:
            raise TutorError(FailureKind.DUPLICATE_ENTRY) from exc
        except psycopg2.IntegrityError as exc:
            raise TutorError(
                FailureKind.VALIDATION_FAILED, "Database constraint violation"
            ) from exc
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Failed to update embedding: {exc}"
            ) from exc
        if not rows:
            raise TutorError(FailureKind.NOT_FOUND)
        logger.info("Updated question | id=%s", question_id)
        return _to_record(rows[0])

    def delete(self, question_id: str) -> None:
        if _parse_uuid(question_id) is None:
            raise TutorError(FailureKind.NOT_FOUND)
        sql = "DELETE FROM questions WHERE id = %s RETURNING id"
        try:
            rows = self._execute(sql, (question_id,))
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Failed to delete embedding: {exc}"
            ) from exc
        if not rows:
            raise TutorError(FailureKind.NOT_FOUND)
        logger.info("Deleted question | id=%s", question_id)

    def count(self) -> int:
        try:
            rows = self._execute("SELECT count(*) AS n FROM questions", ())
        except TutorError:
            raise
        except Exception as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Failed to count embeddings: {exc}"
            ) from exc
        return int(rows[0]["n"]) if rows else 0

    # ── Connection helpers ─────────────────────────────────────────────────

    def _get_pool(self) -> Any:
        """Return the shared pool, creating it on first use."""
        with self._pool_lock:
            if self._pool is None or self._pool.closed:
                try:
                    self._pool = psycopg2.pool.ThreadedConnectionPool(
                        self._pool_min, self._pool_max, self._dsn
                    )
                except psycopg2.Error as exc:
                    raise TutorError(
                        FailureKind.STORAGE_FAILED,
                        f"Cannot connect to database: {exc}",
                    ) from exc
                logger.debug(
                    "PostgresQuestionStore: pool opened | min=%d max=%d",
                    self._pool_min, self._pool_max,
                )
            return self._pool

    def _checkout(self, pool: Any) -> Any:
        """Borrow a connection with pgvector registered and autocommit on.

        A connection's own ``autocommit`` flag marks it as set up: new
        connections from the pool start with it off, and it is only switched
        on here, together with the pgvector type registration.
        """
        try:
            conn = pool.getconn()
        except psycopg2.pool.PoolError as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Connection pool exhausted: {exc}"
            ) from exc
        except psycopg2.Error as exc:
            raise TutorError(
                FailureKind.STORAGE_FAILED, f"Cannot connect to database: {exc}"
            ) from exc
        if not conn.autocommit:
            try:
                conn.autocommit = True
                register_vector(conn)
            except psycopg2.Error as exc:
                pool.putconn(conn, close=True)
                raise TutorError(
                    FailureKind.STORAGE_FAILED,
                    f"Cannot prepare database connection: {exc}",
                ) from exc
        return conn

    def _execute(self, sql: str, params: tuple) -> list[dict]:
        """Execute a statement and return rows as dicts, with one auto-reconnect."""
        for attempt in (1, 2):
            pool = self._get_pool()
            conn = self._checkout(pool)
            discard = False
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(sql, params)
                    if cur.description is None:
                        return []
                    return [dict(row) for row in cur.fetchall()]
            except psycopg2.OperationalError as exc:
                discard = True
                if attempt == 1:
                    logger.warning("DB OperationalError, reconnecting: %s", exc)
                else:
                    raise TutorError(
                        FailureKind.STORAGE_FAILED,
                        f"DB query failed after reconnect: {exc}",
                    ) from exc
            finally:
                pool.putconn(conn, close=discard)
        return []  # unreachable

    def _check_dimensions(self, embedding: list[float]) -> None:
        if len(embedding) != self._dim:
            raise TutorError(
                FailureKind.VALIDATION_FAILED,
                f"Embedding must have {self._dim} dimensions, got {len(embedding)}",
            )

    def close(self) -> None:
        """Close every pooled connection."""
        with self._pool_lock:
            if self._pool is not None and not self._pool.closed:
                self._pool.closeall()
                logger.debug("PostgresQuestionStore: pool closed")


# ── Row helpers ────────────────────────────────────────────────────────────

def _to_record(row: dict) -> QuestionRecord:
    row = dict(row)
    row["embedding"] = [float(x) for x in row["embedding"]]
    return QuestionRecord(**row)


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    """Malformed ids can never match a row; treat them as absent."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
