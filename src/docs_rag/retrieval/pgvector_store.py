"""PostgreSQL + pgvector implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
import psycopg
from pgvector.psycopg import register_vector
from psycopg import errors, sql

from docs_rag.exceptions import ConfigurationError, ConstraintViolation, DimensionMismatch, StoreError
from docs_rag.retrieval.base import VectorStoreBase
from docs_rag.retrieval.models import DistanceMetric, StoredRecord

logger = logging.getLogger(__name__)

# pgvector distance operator and HNSW operator class per metric.
_OPERATORS: dict[str, tuple[str, str]] = {
    "cosine": ("<=>", "vector_cosine_ops"),
    "l2": ("<->", "vector_l2_ops"),
}

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS corpus_config (
    singleton boolean PRIMARY KEY DEFAULT true CHECK (singleton),
    dimension integer NOT NULL,
    metric text NOT NULL
);
CREATE TABLE IF NOT EXISTS docs (
    id bigserial PRIMARY KEY,
    path text,
    content bytea NOT NULL,
    content_md5 bytea NOT NULL UNIQUE,
    embedding vector({dimension}) NOT NULL
);
CREATE INDEX IF NOT EXISTS docs_embedding_idx ON docs USING hnsw (embedding {opclass});
"""


class PgVectorStore(VectorStoreBase):
    """pgvector-backed store over a single psycopg connection.

    Parameters
    ----------
    conn:
        An open ``psycopg.Connection`` in autocommit mode. Each
        :meth:`insert_many` call runs in its own transaction, so a batch
        commits whole or not at all and earlier batches stay committed.
    dimension / metric:
        Corpus configuration; checked against ``corpus_config`` by
        :meth:`check_corpus_config`.
    """

    def __init__(self, conn: psycopg.Connection, dimension: int, metric: DistanceMetric = "cosine") -> None:
        super().__init__(dimension, metric)
        self._conn = conn
        self._operator, self._opclass = _OPERATORS[metric]

    @classmethod
    def connect(
        cls,
        database_url: str,
        dimension: int,
        metric: DistanceMetric = "cosine",
        *,
        ensure_schema: bool = True,
    ) -> PgVectorStore:
        """Open a connection, provision the schema and validate the corpus config."""
        try:
            conn = psycopg.connect(database_url, autocommit=True)
        except psycopg.Error as exc:
            raise StoreError(f"failed to connect to database: {exc}") from exc
        store = cls(conn, dimension, metric)
        try:
            if ensure_schema:
                store.ensure_schema()
            register_vector(conn)
            store.check_corpus_config()
        except Exception:
            conn.close()
            raise
        logger.info("Connected to pgvector store (dim=%d, metric=%s)", dimension, metric)
        return store

    # -- schema ---------------------------------------------------------------

    def ensure_schema(self) -> None:
        """Create the extension, tables and HNSW index if missing."""
        ddl = _SCHEMA.format(dimension=int(self.dimension), opclass=self._opclass)
        try:
            self._conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
            for statement in filter(None, (s.strip() for s in ddl.split(";"))):
                self._conn.execute(statement)
            self._conn.execute(
                "INSERT INTO corpus_config (dimension, metric) VALUES (%s, %s) "
                "ON CONFLICT (singleton) DO NOTHING",
                (self.dimension, self.metric),
            )
        except psycopg.Error as exc:
            raise StoreError(f"failed to ensure schema: {exc}") from exc

    def check_corpus_config(self) -> None:
        """Reject a store opened with a dimension or metric the corpus does not use."""
        row = self._execute("SELECT dimension, metric FROM corpus_config").fetchone()
        if row is None:
            raise ConfigurationError("corpus_config is empty; run with schema provisioning enabled")
        dimension, metric = row
        if dimension != self.dimension:
            raise DimensionMismatch(expected=dimension, received=self.dimension)
        if metric != self.metric:
            raise ConfigurationError(f"corpus uses metric {metric!r}, store opened with {self.metric!r}")

    # -- VectorStoreBase overrides --------------------------------------------

    def exists(self, fingerprint: bytes) -> bool:
        row = self._execute(
            "SELECT EXISTS (SELECT 1 FROM docs WHERE content_md5 = %s)", (fingerprint,)
        ).fetchone()
        return bool(row[0])

    def insert(self, record: StoredRecord) -> StoredRecord:
        return self.insert_many([record])[0]

    def insert_many(self, records: Sequence[StoredRecord]) -> list[StoredRecord]:
        for record in records:
            self.check_dimension(record.embedding)
        stored: list[StoredRecord] = []
        try:
            # Any exception, KeyboardInterrupt included, rolls the whole batch back.
            with self._conn.transaction():
                for record in records:
                    row = self._conn.execute(
                        "INSERT INTO docs (path, content, content_md5, embedding) "
                        "VALUES (%s, %s, %s, %s) RETURNING id",
                        (record.path, record.content, record.content_fingerprint, _to_vector(record.embedding)),
                    ).fetchone()
                    stored.append(record.model_copy(update={"id": row[0], "distance": None}))
        except errors.UniqueViolation as exc:
            raise ConstraintViolation(records[len(stored)].content_fingerprint) from exc
        except errors.DataException as exc:
            # Raised by pgvector when the column dimension disagrees.
            raise DimensionMismatch(self.dimension, len(records[len(stored)].embedding)) from exc
        except psycopg.Error as exc:
            raise StoreError(f"failed to create docs: {exc}") from exc
        return stored

    def top_k(self, query_embedding: Sequence[float], k: int) -> list[StoredRecord]:
        self.check_k(k)
        self.check_dimension(query_embedding)
        query = sql.SQL(
            "SELECT id, path, content, content_md5, embedding, embedding {op} %(q)s AS distance "
            "FROM docs ORDER BY distance, id LIMIT %(k)s"
        ).format(op=sql.SQL(self._operator))
        rows = self._execute(query, {"q": _to_vector(query_embedding), "k": k}).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        return int(self._execute("SELECT count(*) FROM docs").fetchone()[0])

    def health_check(self) -> bool:
        try:
            self._conn.execute("SELECT 1")
            return True
        except psycopg.Error:
            logger.warning("Postgres health-check failed", exc_info=True)
            return False

    def close(self) -> None:
        self._conn.close()

    # -- internals ------------------------------------------------------------

    def _execute(self, query: Any, params: Any = None) -> psycopg.Cursor:
        try:
            return self._conn.execute(query, params)
        except psycopg.Error as exc:
            raise StoreError(f"query failed: {exc}") from exc


def _to_vector(embedding: Sequence[float]) -> np.ndarray:
    return np.asarray(embedding, dtype=np.float32)


def _row_to_record(row: Sequence[Any]) -> StoredRecord:
    rec_id, path, content, content_md5, embedding, dist = row
    return StoredRecord(
        id=rec_id,
        path=path,
        content=bytes(content),
        content_fingerprint=bytes(content_md5),
        embedding=[float(v) for v in embedding],
        distance=float(dist),
    )
