"""
Retrieval — vector stores, nearest-neighbour search and prompt assembly.

This module wraps the vector store behind a clean interface so that the
ingestion and query paths never need to know which DB is backing them.

Public surface
--------------
- :class:`Retriever` — query path: embed, look up, assemble, stream.
- :class:`VectorStoreBase` — abstract backend.
- :class:`InMemoryVectorStore` — exact in-process backend.
- :class:`PgVectorStore` — PostgreSQL + pgvector backend (default).
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`DocumentUnit`, :class:`StoredRecord`, :class:`IngestionReport` — data models.
- :func:`create_store` — backend factory driven by settings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from docs_rag.retrieval.base import VectorStoreBase
from docs_rag.retrieval.memory_store import InMemoryVectorStore
from docs_rag.retrieval.models import DocumentUnit, EmbeddedUnit, IngestionReport, StoredRecord
from docs_rag.retrieval.retriever import Retriever

if TYPE_CHECKING:
    from docs_rag.config import Settings

__all__ = [
    "ChromaVectorStore",
    "DocumentUnit",
    "EmbeddedUnit",
    "InMemoryVectorStore",
    "IngestionReport",
    "PgVectorStore",
    "Retriever",
    "StoredRecord",
    "VectorStoreBase",
    "create_store",
]


def create_store(settings: Settings) -> VectorStoreBase:
    """Open the backend named by ``settings.vector_store``."""
    if settings.vector_store == "postgres":
        from docs_rag.retrieval.pgvector_store import PgVectorStore

        return PgVectorStore.connect(
            settings.database_url,
            settings.embedding_dimension,
            settings.distance_metric,
        )
    if settings.vector_store == "chroma":
        from docs_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore.from_settings(
            settings.chroma_host,
            settings.chroma_port,
            settings.chroma_collection,
            settings.embedding_dimension,
            settings.distance_metric,
        )
    if settings.vector_store == "memory":
        return InMemoryVectorStore(settings.embedding_dimension, settings.distance_metric)
    raise ValueError(f"Unsupported vector_store={settings.vector_store!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import database backends to avoid pulling in their drivers at import time."""
    if name == "ChromaVectorStore":
        from docs_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "PgVectorStore":
        from docs_rag.retrieval.pgvector_store import PgVectorStore

        return PgVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
