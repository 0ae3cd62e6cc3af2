"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase` and
implementing the abstract methods. The corpus-wide embedding dimension and
distance metric are explicit constructor arguments, validated once, so
every backend rejects vectors of the wrong size the same way.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import get_args

from docs_rag.exceptions import DimensionMismatch
from docs_rag.retrieval.models import DistanceMetric, StoredRecord

SUPPORTED_METRICS: tuple[str, ...] = get_args(DistanceMetric)


def distance(a: Sequence[float], b: Sequence[float], metric: DistanceMetric) -> float:
    """Distance between two equal-length vectors; smaller is nearer.

    Cosine distance of a zero vector is defined as ``1.0`` (no similarity).
    """
    if metric == "l2":
        return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))
    if metric == "cosine":
        dot = sum(x * y for x, y in zip(a, b))
        norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
        if norm == 0.0:
            return 1.0
        return 1.0 - dot / norm
    raise ValueError(f"Unsupported distance metric: {metric!r}")


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    dimension:
        Length every stored and query embedding must have.
    metric:
        ``"cosine"`` or ``"l2"``; fixed for the life of the corpus.
    """

    def __init__(self, dimension: int, metric: DistanceMetric = "cosine") -> None:
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")
        if metric not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported distance metric: {metric!r}")
        self.dimension = dimension
        self.metric: DistanceMetric = metric

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def exists(self, fingerprint: bytes) -> bool:
        """Return ``True`` iff a record with exactly this fingerprint is stored."""
        ...

    @abstractmethod
    def insert(self, record: StoredRecord) -> StoredRecord:
        """Append *record* and return it with its ``id`` assigned.

        Raises
        ------
        ConstraintViolation
            A record with the same fingerprint already exists.
        DimensionMismatch
            ``len(record.embedding)`` differs from :attr:`dimension`.
        """
        ...

    @abstractmethod
    def insert_many(self, records: Sequence[StoredRecord]) -> list[StoredRecord]:
        """Append *records* as one unit: either all are stored or none are.

        Returns the records in order with their ids assigned. Raises the same
        errors as :meth:`insert`, after which the store is unchanged.
        """
        ...

    @abstractmethod
    def top_k(self, query_embedding: Sequence[float], k: int) -> list[StoredRecord]:
        """Return up to *k* records, nearest first, ties in insertion order.

        An empty corpus yields ``[]``.
        """
        ...

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def close(self) -> None:
        """Release backend resources. No-op by default."""

    # -- shared validation ----------------------------------------------------

    def check_dimension(self, embedding: Sequence[float]) -> None:
        if len(embedding) != self.dimension:
            raise DimensionMismatch(self.dimension, len(embedding))

    @staticmethod
    def check_k(k: int) -> None:
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")

    def __enter__(self) -> VectorStoreBase:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
