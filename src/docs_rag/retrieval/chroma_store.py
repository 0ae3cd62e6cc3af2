"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from docs_rag.exceptions import ConfigurationError, ConstraintViolation, DimensionMismatch
from docs_rag.retrieval.base import VectorStoreBase
from docs_rag.retrieval.models import DistanceMetric, StoredRecord

logger = logging.getLogger(__name__)

# Chroma's HNSW space names for our metrics.
_SPACES = {"cosine": "cosine", "l2": "l2"}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Records are keyed by the hex fingerprint, so Chroma itself enforces one
    record per fingerprint. Each record carries a ``seq`` metadata value
    (insertion order) used to break distance ties.

    Parameters
    ----------
    client:
        A Chroma client (``HttpClient`` in production, ``EphemeralClient``
        for local runs).
    collection_name:
        Name of the Chroma collection.
    dimension / metric:
        Corpus configuration, recorded on the collection when it is created
        and checked on every later open.
    """

    def __init__(
        self,
        client: Any,
        collection_name: str,
        dimension: int,
        metric: DistanceMetric = "cosine",
    ) -> None:
        super().__init__(dimension, metric)
        self._client = client
        self._collection = client.get_or_create_collection(
            collection_name,
            metadata={"hnsw:space": _SPACES[metric], "dimension": dimension},
        )
        self._check_collection_config()
        self._next_seq = self._collection.count() + 1

    @classmethod
    def from_settings(cls, host: str, port: int, collection_name: str, dimension: int, metric: DistanceMetric) -> ChromaVectorStore:
        return cls(chromadb.HttpClient(host=host, port=port), collection_name, dimension, metric)

    def _check_collection_config(self) -> None:
        meta = self._collection.metadata or {}
        stored_dim = meta.get("dimension")
        if stored_dim is not None and int(stored_dim) != self.dimension:
            raise DimensionMismatch(expected=int(stored_dim), received=self.dimension)
        space = meta.get("hnsw:space", "l2")
        if space != _SPACES[self.metric]:
            raise ConfigurationError(f"collection uses space {space!r}, store opened with {self.metric!r}")

    # -- VectorStoreBase overrides --------------------------------------------

    def exists(self, fingerprint: bytes) -> bool:
        found = self._collection.get(ids=[fingerprint.hex()], include=[])
        return bool(found.get("ids"))

    def insert(self, record: StoredRecord) -> StoredRecord:
        return self.insert_many([record])[0]

    def insert_many(self, records: Sequence[StoredRecord]) -> list[StoredRecord]:
        """Validate every record, then write them with a single ``add`` call."""
        if not records:
            return []
        seen: set[bytes] = set()
        for record in records:
            self.check_dimension(record.embedding)
            fp = record.content_fingerprint
            if fp in seen or self.exists(fp):
                raise ConstraintViolation(fp)
            seen.add(fp)

        stored: list[StoredRecord] = []
        metadatas: list[dict[str, Any]] = []
        for offset, record in enumerate(records):
            seq = self._next_seq + offset
            metadata: dict[str, Any] = {"seq": seq}
            if record.path is not None:
                metadata["path"] = record.path
            metadatas.append(metadata)
            stored.append(record.model_copy(update={"id": seq, "distance": None}))

        self._collection.add(
            ids=[r.content_fingerprint.hex() for r in records],
            embeddings=[list(r.embedding) for r in records],
            documents=[r.text for r in records],
            metadatas=metadatas,
        )
        self._next_seq += len(records)
        return stored

    def top_k(self, query_embedding: Sequence[float], k: int) -> list[StoredRecord]:
        self.check_k(k)
        self.check_dimension(query_embedding)
        total = self._collection.count()
        if total == 0:
            return []

        results = self._collection.query(
            query_embeddings=[list(query_embedding)],
            n_results=min(k, total),
            include=["documents", "metadatas", "distances", "embeddings"],
        )

        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]
        embeddings = results.get("embeddings", [[]])[0]

        hits: list[StoredRecord] = []
        for doc_id, content, meta, dist, emb in zip(ids, docs, metas, distances, embeddings):
            meta = meta or {}
            hits.append(
                StoredRecord(
                    id=meta.get("seq"),
                    path=meta.get("path"),
                    content=(content or "").encode("utf-8"),
                    content_fingerprint=bytes.fromhex(doc_id),
                    embedding=[float(v) for v in emb],
                    distance=float(dist),
                )
            )
        # Chroma does not order ties; insertion sequence does.
        hits.sort(key=lambda rec: (rec.distance, rec.id if rec.id is not None else 0))
        return hits[:k]

    def count(self) -> int:
        return self._collection.count()

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
