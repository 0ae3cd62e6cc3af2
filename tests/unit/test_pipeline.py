"""Unit tests for the ingestion pipeline.

All tests run against :class:`InMemoryVectorStore` and a deterministic fake
embedding model, so no database or model download is needed.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import DIM, HashEmbeddings
from docs_rag.exceptions import CorpusReadError, DimensionMismatch
from docs_rag.ingestion.batcher import PendingBatch
from docs_rag.ingestion.embedder import EmbeddingProvider
from docs_rag.ingestion.pipeline import IngestionPipeline
from docs_rag.retrieval.memory_store import InMemoryVectorStore
from docs_rag.retrieval.models import DocumentUnit


class FailingEmbeddings(HashEmbeddings):
    """Fails on the *fail_on*-th ``embed_documents`` call (1-based)."""

    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self.fail_on = fail_on

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if len(self.calls) + 1 == self.fail_on:
            self.calls.append(list(texts))
            raise ConnectionError("provider unreachable")
        return super().embed_documents(texts)


class ShortEmbeddings(HashEmbeddings):
    """Drops the last vector of every response."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return super().embed_documents(texts)[:-1]


class RaggedEmbeddings(HashEmbeddings):
    """Returns the last vector of every response one element short."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        vectors = super().embed_documents(texts)
        vectors[-1] = vectors[-1][:-1]
        return vectors


class InterruptingStore(InMemoryVectorStore):
    """Raises ``KeyboardInterrupt`` while staging the *interrupt_on*-th record (1-based)."""

    def __init__(self, interrupt_on: int) -> None:
        super().__init__(dimension=DIM)
        self.interrupt_on = interrupt_on
        self.staged = 0

    def _stage(self, record, record_id, fingerprints):
        self.staged += 1
        if self.staged == self.interrupt_on:
            raise KeyboardInterrupt
        return super()._stage(record, record_id, fingerprints)


# ── happy path ───────────────────────────────────────────────────────


class TestRun:
    def test_end_to_end_three_paragraphs(self, make_pipeline, store, embeddings, write_corpus) -> None:
        root = write_corpus({"doc.md": "A\n\nB\n\nC"})
        report = make_pipeline().run(root)

        assert report.ok
        assert report.documents_read == 1
        assert report.documents_embedded == 1
        assert report.records_inserted == 3
        assert store.count() == 3

        results = store.top_k(embeddings.vector("B"), 1)
        assert [r.text for r in results] == ["B"]
        assert results[0].path == "doc.md"

    def test_second_run_inserts_nothing(self, make_pipeline, store, embeddings, write_corpus) -> None:
        root = write_corpus({"a.md": "one\n\ntwo", "sub/b.md": "three"})
        first = make_pipeline().run(root)
        calls_after_first = len(embeddings.calls)

        second = make_pipeline().run(root)

        assert first.records_inserted == 3
        assert second.records_inserted == 0
        assert second.documents_skipped == 2
        assert second.documents_read == 2
        assert len(embeddings.calls) == calls_after_first
        assert store.count() == 3

    def test_batches_span_documents(self, make_pipeline, embeddings, write_corpus) -> None:
        root = write_corpus({f"doc{i}.md": f"{i}-a\n\n{i}-b\n\n{i}-c" for i in range(3)})
        report = make_pipeline(batch_size=2).run(root)

        assert [len(c) for c in embeddings.calls] == [2, 2, 2, 2, 1]
        assert report.batches_submitted == 5
        assert report.records_inserted == 9
        assert report.documents_embedded == 3

    def test_walk_is_recursive_and_sorted(self, make_pipeline, store, write_corpus) -> None:
        root = write_corpus({"b.md": "second", "a/nested.md": "first"})
        make_pipeline().run(root)
        paths = [r.path for r in store.top_k([0.0] * DIM, 5)]
        assert sorted(paths) == ["a/nested.md", "b.md"]

    def test_empty_document_is_noop(self, make_pipeline, embeddings, write_corpus) -> None:
        root = write_corpus({"blank.md": "  \n\n \n", "real.md": "text"})
        report = make_pipeline().run(root)
        assert report.documents_empty == 1
        assert report.documents_embedded == 1
        assert embeddings.calls == [["text"]]

    def test_duplicate_paragraphs_stored_once(self, make_pipeline, store, write_corpus) -> None:
        root = write_corpus({"a.md": "shared\n\nshared\n\nonly-a", "b.md": "shared"})
        report = make_pipeline().run(root)
        assert report.ok
        assert store.count() == 2
        assert report.documents_skipped == 1

    def test_partially_new_document_embeds_only_new_units(
        self, make_pipeline, embeddings, write_corpus, tmp_path: Path
    ) -> None:
        root = write_corpus({"a.md": "old"})
        make_pipeline().run(root)
        (root / "a.md").write_text("old\n\nnew")
        report = make_pipeline().run(root)
        assert embeddings.calls[-1] == ["new"]
        assert report.records_inserted == 1
        assert report.documents_embedded == 1

    def test_empty_corpus(self, make_pipeline, write_corpus) -> None:
        root = write_corpus({})
        report = make_pipeline().run(root)
        assert report.ok
        assert report.documents_read == 0

    def test_summary_logged(self, make_pipeline, write_corpus, caplog: pytest.LogCaptureFixture) -> None:
        root = write_corpus({"doc.md": "A"})
        with caplog.at_level(logging.INFO, logger="docs_rag"):
            make_pipeline().run(root)
        assert "Population complete" in caplog.text
        assert "Created doc doc.md" in caplog.text


# ── failures ─────────────────────────────────────────────────────────


class TestFailures:
    def test_provider_error_keeps_earlier_batches(self, make_pipeline, store, write_corpus) -> None:
        root = write_corpus({"doc.md": "1\n\n2\n\n3\n\n4\n\n5"})
        failing = FailingEmbeddings(fail_on=2)
        report = make_pipeline(batch_size=2, embedder=EmbeddingProvider(failing)).run(root)

        assert not report.ok
        assert "provider unreachable" in report.error
        assert report.records_inserted == 2
        assert store.count() == 2
        assert [fp for _, fp in report.failed_units] == [
            DocumentUnit.from_text(t).fingerprint.hex() for t in ("3", "4")
        ]
        assert report.documents_embedded == 0

    def test_rerun_after_failure_resumes(self, make_pipeline, store, embeddings, write_corpus) -> None:
        root = write_corpus({"doc.md": "1\n\n2\n\n3\n\n4\n\n5"})
        make_pipeline(batch_size=2, embedder=EmbeddingProvider(FailingEmbeddings(fail_on=2))).run(root)

        report = make_pipeline(batch_size=2).run(root)

        assert report.ok
        assert embeddings.calls == [["3", "4"], ["5"]]
        assert store.count() == 5

    def test_batch_size_mismatch_persists_nothing_from_batch(self, make_pipeline, store, write_corpus) -> None:
        root = write_corpus({"doc.md": "A\n\nB\n\nC"})
        report = make_pipeline(embedder=EmbeddingProvider(ShortEmbeddings())).run(root)

        assert not report.ok
        assert "2 vectors for 3 texts" in report.error
        assert len(report.failed_units) == 3
        assert all(path == "doc.md" for path, _ in report.failed_units)
        assert store.count() == 0

    def test_interrupt_during_store_call_persists_nothing_from_batch(self, make_pipeline, write_corpus) -> None:
        root = write_corpus({"doc.md": "A\n\nB\n\nC"})
        store = InterruptingStore(interrupt_on=2)
        with pytest.raises(KeyboardInterrupt):
            make_pipeline(store=store).run(root)
        assert store.count() == 0

    def test_interrupt_keeps_earlier_batches(self, make_pipeline, write_corpus) -> None:
        root = write_corpus({"doc.md": "A\n\nB\n\nC"})
        store = InterruptingStore(interrupt_on=3)
        with pytest.raises(KeyboardInterrupt):
            make_pipeline(batch_size=2, store=store).run(root)
        assert store.count() == 2
        assert not store.exists(DocumentUnit.from_text("C").fingerprint)

    def test_uneven_vector_lengths_persist_nothing_from_batch(
        self, make_pipeline, store, write_corpus, caplog: pytest.LogCaptureFixture
    ) -> None:
        root = write_corpus({"doc.md": "A\n\nB\n\nC"})
        with caplog.at_level(logging.INFO, logger="docs_rag"), pytest.raises(DimensionMismatch):
            make_pipeline(embedder=EmbeddingProvider(RaggedEmbeddings())).run(root)
        assert store.count() == 0
        assert "records=0" in caplog.text

    def test_dimension_mismatch_is_fatal(self, embedder, write_corpus) -> None:
        root = write_corpus({"doc.md": "A"})
        pipeline = IngestionPipeline(InMemoryVectorStore(dimension=DIM + 1), embedder)
        with pytest.raises(DimensionMismatch):
            pipeline.run(root)

    def test_missing_root_aborts(self, make_pipeline, tmp_path: Path) -> None:
        with pytest.raises(CorpusReadError):
            make_pipeline().run(tmp_path / "does-not-exist")

    def test_unreadable_file_aborts_by_default(self, make_pipeline, write_corpus, monkeypatch) -> None:
        root = write_corpus({"bad.md": "x", "good.md": "y"})
        _make_unreadable(monkeypatch, "bad.md")
        with pytest.raises(CorpusReadError, match="bad.md"):
            make_pipeline().run(root)

    def test_unreadable_file_skipped_when_configured(self, make_pipeline, store, write_corpus, monkeypatch) -> None:
        root = write_corpus({"bad.md": "x", "good.md": "y"})
        _make_unreadable(monkeypatch, "bad.md")
        report = make_pipeline(skip_unreadable=True).run(root)
        assert report.ok
        assert report.documents_unreadable == 1
        assert report.documents_read == 1
        assert store.count() == 1


class TestFlush:
    def test_flush_returns_records_and_cleared_buffer(self, make_pipeline, store) -> None:
        units = [DocumentUnit.from_text(t, source_path="x.md") for t in ("A", "B")]
        batch = PendingBatch(2).with_unit(units[0]).with_unit(units[1])

        records, cleared = make_pipeline(batch_size=2).flush(batch)

        assert [r.text for r in records] == ["A", "B"]
        assert all(r.id is not None for r in records)
        assert cleared.is_empty
        assert cleared.max_size == 2
        assert store.count() == 2

    def test_flush_of_empty_batch_is_noop(self, make_pipeline, embeddings) -> None:
        records, cleared = make_pipeline().flush(PendingBatch(3))
        assert records == []
        assert cleared.is_empty
        assert embeddings.calls == []

    def test_batch_size_validated(self, store, embedder) -> None:
        with pytest.raises(ValueError):
            IngestionPipeline(store, embedder, batch_size=0)


def _make_unreadable(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    original = Path.read_bytes

    def read_bytes(self: Path) -> bytes:
        if self.name == name:
            raise PermissionError(f"permission denied: {self}")
        return original(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
