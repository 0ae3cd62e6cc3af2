"""In-process vector store with exact brute-force search."""

from __future__ import annotations

from collections.abc import Sequence

from docs_rag.exceptions import ConstraintViolation
from docs_rag.retrieval.base import VectorStoreBase, distance
from docs_rag.retrieval.models import DistanceMetric, StoredRecord


class InMemoryVectorStore(VectorStoreBase):
    """Vector store held in a Python list; nothing survives the process.

    Useful for tests and for trying the pipeline without a database.
    """

    def __init__(self, dimension: int, metric: DistanceMetric = "cosine") -> None:
        super().__init__(dimension, metric)
        self._records: list[StoredRecord] = []
        self._fingerprints: set[bytes] = set()

    def exists(self, fingerprint: bytes) -> bool:
        return fingerprint in self._fingerprints

    def insert(self, record: StoredRecord) -> StoredRecord:
        return self.insert_many([record])[0]

    def insert_many(self, records: Sequence[StoredRecord]) -> list[StoredRecord]:
        staged: list[StoredRecord] = []
        fingerprints = set(self._fingerprints)
        for record in records:
            staged.append(self._stage(record, len(self._records) + len(staged) + 1, fingerprints))
        # Nothing is visible until every record has been staged.
        self._records = [*self._records, *staged]
        self._fingerprints = fingerprints
        return staged

    def top_k(self, query_embedding: Sequence[float], k: int) -> list[StoredRecord]:
        self.check_k(k)
        self.check_dimension(query_embedding)
        # sorted() is stable and _records is in insertion order, so equal
        # distances keep the earliest record first.
        ranked = sorted(
            (
                rec.model_copy(update={"distance": distance(query_embedding, rec.embedding, self.metric)})
                for rec in self._records
            ),
            key=lambda rec: rec.distance,
        )
        return ranked[:k]

    def count(self) -> int:
        return len(self._records)

    def health_check(self) -> bool:
        return True

    def _stage(self, record: StoredRecord, record_id: int, fingerprints: set[bytes]) -> StoredRecord:
        self.check_dimension(record.embedding)
        if record.content_fingerprint in fingerprints:
            raise ConstraintViolation(record.content_fingerprint)
        fingerprints.add(record.content_fingerprint)
        return record.model_copy(update={"id": record_id, "distance": None})
