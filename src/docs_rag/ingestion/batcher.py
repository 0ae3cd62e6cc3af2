"""Batched embedding with group-relative reconciliation.

Units are submitted to the provider in consecutive groups of at most
``max_batch_size``. Every returned vector is paired with the member at the
same position *within its group*; the group carries its own members, so the
mapping never depends on how large earlier groups were. A trailing partial
group therefore maps exactly like a full one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from docs_rag.exceptions import BatchSizeMismatch
from docs_rag.retrieval.models import DocumentUnit, EmbeddedUnit

logger = logging.getLogger(__name__)

EmbedFn = Callable[[Sequence[str]], Sequence[Sequence[float]]]


def iter_groups(units: Iterable[DocumentUnit], max_batch_size: int) -> Iterator[tuple[DocumentUnit, ...]]:
    """Partition *units* into consecutive groups of *max_batch_size*.

    The last group may be shorter; no group is ever empty.
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
    group: list[DocumentUnit] = []
    for unit in units:
        group.append(unit)
        if len(group) == max_batch_size:
            yield tuple(group)
            group = []
    if group:
        yield tuple(group)


def embed_group(group: Sequence[DocumentUnit], embed_fn: EmbedFn) -> list[EmbeddedUnit]:
    """Embed one group and pair each vector with its originating member.

    Raises
    ------
    BatchSizeMismatch
        If the provider returned a different number of vectors than texts.
        None of the group's units are returned in that case.
    """
    vectors = list(embed_fn([unit.text for unit in group]))
    if len(vectors) != len(group):
        raise BatchSizeMismatch(group, expected=len(group), received=len(vectors))
    return [
        EmbeddedUnit(unit=member, embedding=list(vector))
        for member, vector in zip(group, vectors)
    ]


def embed_batch(
    units: Iterable[DocumentUnit],
    max_batch_size: int,
    embed_fn: EmbedFn,
) -> list[EmbeddedUnit]:
    """Embed every unit, one provider call per group, in order.

    Parameters
    ----------
    units:
        Units to embed; order is preserved in the result.
    max_batch_size:
        Upper bound on texts per provider call.
    embed_fn:
        ``texts -> vectors``; must return vectors in submission order.

    Returns
    -------
    list[EmbeddedUnit]
        One entry per input unit, carrying the unit itself.
    """
    embedded: list[EmbeddedUnit] = []
    for number, group in enumerate(iter_groups(units, max_batch_size), 1):
        logger.debug("Submitting group %d (%d texts)", number, len(group))
        embedded.extend(embed_group(group, embed_fn))
    return embedded


@dataclass(frozen=True)
class PendingBatch:
    """Bounded buffer of units awaiting embedding.

    The buffer is a value: :meth:`with_unit` and :meth:`cleared` return new
    instances, so a flush can hand back an empty buffer without touching
    shared state.
    """

    max_size: int
    units: tuple[DocumentUnit, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {self.max_size}")
        if len(self.units) > self.max_size:
            raise ValueError("pending batch exceeds its max_size")

    @property
    def is_full(self) -> bool:
        return len(self.units) >= self.max_size

    @property
    def is_empty(self) -> bool:
        return not self.units

    @property
    def fingerprints(self) -> frozenset[bytes]:
        return frozenset(unit.fingerprint for unit in self.units)

    def with_unit(self, unit: DocumentUnit) -> PendingBatch:
        if self.is_full:
            raise ValueError("cannot add to a full batch; flush it first")
        return PendingBatch(self.max_size, self.units + (unit,))

    def cleared(self) -> PendingBatch:
        return PendingBatch(self.max_size)

    def __len__(self) -> int:
        return len(self.units)
