"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from pathlib import Path

import pytest
from langchain_core.embeddings import Embeddings

from docs_rag.ingestion.embedder import EmbeddingProvider
from docs_rag.ingestion.pipeline import IngestionPipeline
from docs_rag.retrieval.memory_store import InMemoryVectorStore

DIM = 4


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class HashEmbeddings(Embeddings):
    """Deterministic fake: each text maps to a vector derived from its MD5.

    Every ``embed_documents`` call is recorded so tests can inspect batch
    sizes and order.
    """

    def __init__(self, dimension: int = DIM) -> None:
        self.dimension = dimension
        self.calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        digest = hashlib.md5(text.encode("utf-8")).digest()
        return [b / 255.0 * 2 - 1 for b in digest[: self.dimension]]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self.vector(text)


@pytest.fixture()
def embeddings() -> HashEmbeddings:
    return HashEmbeddings()


@pytest.fixture()
def embedder(embeddings: HashEmbeddings) -> EmbeddingProvider:
    return EmbeddingProvider(embeddings)


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=DIM)


@pytest.fixture()
def make_pipeline(store: InMemoryVectorStore, embedder: EmbeddingProvider) -> Callable[..., IngestionPipeline]:
    def _make(batch_size: int = 100, **kwargs) -> IngestionPipeline:
        return IngestionPipeline(
            kwargs.pop("store", store),
            kwargs.pop("embedder", embedder),
            batch_size=batch_size,
            **kwargs,
        )

    return _make


@pytest.fixture()
def write_corpus(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative_path: text}`` under a fresh corpus root and return it."""

    def _write(files: dict[str, str]) -> Path:
        root = tmp_path / "corpus"
        root.mkdir(exist_ok=True)
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(text.encode("utf-8"))
        return root

    return _write
