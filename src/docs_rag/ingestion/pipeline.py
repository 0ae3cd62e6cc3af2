"""Ingestion pipeline — walk → chunk → fingerprint → filter → batch → embed → persist.

Documents are processed one at a time. Their new units accumulate in a
:class:`~docs_rag.ingestion.batcher.PendingBatch` that is flushed whenever it
fills up and once more when the corpus is exhausted, so a batch may span
several documents.

Failure model
-------------
* Provider errors and :class:`~docs_rag.exceptions.BatchSizeMismatch` reject
  the in-flight batch (nothing from it is written), stop the run and are
  reported in :attr:`IngestionReport.error`. Earlier batches stay committed,
  and because persisted units are skipped on the next run, ingestion is
  resumable.
* :class:`~docs_rag.exceptions.DimensionMismatch`,
  :class:`~docs_rag.exceptions.ConstraintViolation` and read failures are
  fatal and propagate to the caller.
* A batch is stored all or nothing, including when the run is interrupted
  during a store call; ``records_inserted`` counts committed batches only.
* The summary is logged in every case.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from docs_rag.exceptions import CorpusReadError, DocsRagError, ProviderError
from docs_rag.ingestion.batcher import PendingBatch, embed_group
from docs_rag.ingestion.chunker import chunk
from docs_rag.ingestion.loader import CorpusDocument, walk_corpus
from docs_rag.retrieval.models import DocumentUnit, IngestionReport, StoredRecord

if TYPE_CHECKING:
    from docs_rag.ingestion.embedder import EmbeddingProvider
    from docs_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class IngestState(str, Enum):
    """Per-document ingestion states."""

    WALKING = "walking"
    CHUNKING = "chunking"
    FINGERPRINTING = "fingerprinting"
    FILTERING = "filtering"
    BATCHING = "batching"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class IngestionPipeline:
    """Populate a vector store from a directory of text documents.

    Parameters
    ----------
    store:
        Destination store; also answers the ``exists`` pre-check.
    embedder:
        Embedding provider; batches are submitted to it sequentially.
    batch_size:
        Maximum number of texts per embedding request.
    skip_unreadable:
        Count and skip unreadable files instead of aborting the run.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        *,
        batch_size: int = 100,
        skip_unreadable: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._store = store
        self._embedder = embedder
        self.batch_size = batch_size
        self.skip_unreadable = skip_unreadable

    # -- public API -----------------------------------------------------------

    def run(self, root: str | Path) -> IngestionReport:
        """Ingest every file under *root* and return the run's counters."""
        report = IngestionReport()
        batch = PendingBatch(self.batch_size)
        seen: set[bytes] = set()
        remaining: dict[str, int] = {}

        try:
            for item in walk_corpus(root, skip_unreadable=self.skip_unreadable):
                if isinstance(item, CorpusReadError):
                    report.documents_unreadable += 1
                    continue
                report.documents_read += 1
                units = self._prepare(item, seen, report)
                if not units:
                    _transition(item.path, IngestState.WALKING)
                    continue

                _transition(item.path, IngestState.BATCHING)
                remaining[item.path] = len(units)
                for unit in units:
                    seen.add(unit.fingerprint)
                    batch = batch.with_unit(unit)
                    if batch.is_full:
                        batch = self._flush_into(batch, remaining, report)

            if not batch.is_empty:
                batch = self._flush_into(batch, remaining, report)
        except ProviderError as exc:
            report.failed_units = [(u.source_path, u.fingerprint.hex()) for u in batch.units]
            report.error = str(exc)
            for path in {u.source_path for u in batch.units}:
                _transition(path, IngestState.FAILED)
            logger.error("Rejected batch of %d units: %s", len(batch), exc)
        except DocsRagError as exc:
            report.error = str(exc)
            raise
        except KeyboardInterrupt:
            report.error = "interrupted"
            raise
        finally:
            if report.error:
                logger.error("Population stopped: %s", report.summary())
            else:
                logger.info("Population complete: %s", report.summary())
        return report

    def flush(self, batch: PendingBatch) -> tuple[list[StoredRecord], PendingBatch]:
        """Embed and persist every unit in *batch*.

        Returns the stored records and an empty buffer of the same bound.
        Every vector is embedded and size-checked before the batch is
        persisted with a single ``insert_many`` call, so a failure or
        interrupt at any step leaves none of it stored.
        """
        if batch.is_empty:
            return [], batch
        for path in {u.source_path for u in batch.units}:
            _transition(path, IngestState.EMBEDDING)
        embedded = embed_group(batch.units, self._embedder.embed_texts)
        for e in embedded:
            self._store.check_dimension(e.embedding)

        for path in {u.source_path for u in batch.units}:
            _transition(path, IngestState.PERSISTING)
        records = self._store.insert_many([StoredRecord.from_embedded(e) for e in embedded])
        return records, batch.cleared()

    # -- internals ------------------------------------------------------------

    def _prepare(self, doc: CorpusDocument, seen: set[bytes], report: IngestionReport) -> list[DocumentUnit]:
        """Chunk, fingerprint and filter one document; return its new units."""
        _transition(doc.path, IngestState.CHUNKING)
        texts = chunk(doc.data)
        if not texts:
            report.documents_empty += 1
            logger.info("Empty doc %s", doc.path)
            return []

        _transition(doc.path, IngestState.FINGERPRINTING)
        units = [DocumentUnit.from_text(text, source_path=doc.path) for text in texts]

        _transition(doc.path, IngestState.FILTERING)
        fresh: list[DocumentUnit] = []
        local: set[bytes] = set()
        for unit in units:
            fp = unit.fingerprint
            if fp in seen or fp in local or self._store.exists(fp):
                continue
            local.add(fp)
            fresh.append(unit)

        if not fresh:
            report.documents_skipped += 1
            logger.info("Skipping doc %s", doc.path)
        return fresh

    def _flush_into(self, batch: PendingBatch, remaining: dict[str, int], report: IngestionReport) -> PendingBatch:
        report.batches_submitted += 1
        records, cleared = self.flush(batch)
        report.records_inserted += len(records)
        for rec in records:
            remaining[rec.path] -= 1
            if remaining[rec.path] == 0:
                del remaining[rec.path]
                report.documents_embedded += 1
                _transition(rec.path, IngestState.DONE)
                logger.info("Created doc %s", rec.path)
        return cleared


def _transition(path: str | None, state: IngestState) -> None:
    logger.debug("%s -> %s", path, state.value)
