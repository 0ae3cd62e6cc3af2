"""Domain models for document units, stored records and ingestion reports."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docs_rag.ingestion.fingerprint import fingerprint

DistanceMetric = Literal["cosine", "l2"]


class DocumentUnit(BaseModel):
    """One chunk of source text destined for embedding.

    Attributes
    ----------
    source_path:
        Origin identifier (file path relative to the corpus root), if known.
    text:
        Trimmed, non-empty paragraph text.
    fingerprint:
        MD5 digest of the UTF-8 ``text`` bytes; the deduplication key.
    """

    model_config = ConfigDict(frozen=True)

    source_path: str | None = None
    text: str
    fingerprint: bytes

    @field_validator("text")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("document unit text must not be blank")
        return value

    @classmethod
    def from_text(cls, text: str, source_path: str | None = None) -> DocumentUnit:
        """Build a unit, computing its fingerprint from *text*."""
        return cls(source_path=source_path, text=text, fingerprint=fingerprint(text))


class EmbeddedUnit(BaseModel):
    """A unit paired with the vector the provider returned for it."""

    model_config = ConfigDict(frozen=True)

    unit: DocumentUnit
    embedding: list[float]


class StoredRecord(BaseModel):
    """A persisted document unit plus its vector representation.

    ``id`` is assigned by the store on insert and doubles as the insertion
    order used to break distance ties. ``distance`` is only set on records
    returned by :meth:`~docs_rag.retrieval.base.VectorStoreBase.top_k`.
    """

    content: bytes
    content_fingerprint: bytes
    embedding: list[float]
    path: str | None = None
    id: int | None = None
    distance: float | None = None

    @classmethod
    def from_embedded(cls, embedded: EmbeddedUnit) -> StoredRecord:
        unit = embedded.unit
        return cls(
            content=unit.text.encode("utf-8"),
            content_fingerprint=unit.fingerprint,
            embedding=list(embedded.embedding),
            path=unit.source_path,
        )

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class IngestionReport(BaseModel):
    """Counters reported at the end of an ingestion run, even a failed one."""

    documents_read: int = 0
    documents_skipped: int = 0
    documents_empty: int = 0
    documents_unreadable: int = 0
    documents_embedded: int = 0
    records_inserted: int = 0
    batches_submitted: int = 0
    failed_units: list[tuple[str | None, str]] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        text = (
            f"read={self.documents_read} skipped={self.documents_skipped} "
            f"empty={self.documents_empty} unreadable={self.documents_unreadable} "
            f"embedded={self.documents_embedded} records={self.records_inserted} "
            f"batches={self.batches_submitted}"
        )
        if self.error:
            text += f" failed_units={len(self.failed_units)} error={self.error!r}"
        return text
