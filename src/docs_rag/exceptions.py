"""Exception hierarchy shared by ingestion, storage and retrieval.

Errors that threaten corpus integrity (duplicate fingerprints, dimension
drift, wrong vector counts) are distinct types so the pipeline can abort on
them while treating a single unreadable file as recoverable.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docs_rag.retrieval.models import DocumentUnit


class DocsRagError(Exception):
    """Base class for all errors raised by this package."""


class ProviderError(DocsRagError):
    """The embedding or generation provider was unreachable or rejected the request."""


class BatchSizeMismatch(ProviderError):
    """The provider returned a different number of vectors than texts submitted.

    The whole group is rejected. ``members`` are the units that were in the
    group so the caller can report or retry exactly those.
    """

    def __init__(self, members: Sequence[DocumentUnit], expected: int, received: int) -> None:
        self.members = tuple(members)
        self.expected = expected
        self.received = received
        super().__init__(
            f"embedding provider returned {received} vectors for {expected} texts"
        )

    def member_fingerprints(self) -> list[str]:
        return [m.fingerprint.hex() for m in self.members]


class StoreError(DocsRagError):
    """Base class for persistence failures."""


class ConstraintViolation(StoreError):
    """A record with the same content fingerprint is already stored."""

    def __init__(self, fingerprint: bytes) -> None:
        self.fingerprint = fingerprint
        super().__init__(f"record with fingerprint {fingerprint.hex()} already exists")


class DimensionMismatch(StoreError):
    """An embedding's length disagrees with the corpus-wide dimension."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"expected embedding dimension {expected}, got {received}")


class ConfigurationError(StoreError):
    """The store was opened with settings that disagree with the stored corpus."""


class CorpusReadError(DocsRagError):
    """A corpus file or directory could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"failed to read {path!r}: {reason}")
