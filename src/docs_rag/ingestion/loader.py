"""Corpus source — recursive walk over a directory of raw documents."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from docs_rag.exceptions import CorpusReadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorpusDocument:
    """One input document: its path relative to the corpus root and raw bytes."""

    path: str
    data: bytes


def iter_corpus_paths(root: str | Path) -> Iterator[Path]:
    """Yield every regular file under *root*, recursively, in sorted order.

    Raises
    ------
    CorpusReadError
        If *root* is not a readable directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise CorpusReadError(str(root), "not a directory")
    try:
        paths = sorted(root.rglob("*"))
    except OSError as exc:
        raise CorpusReadError(str(root), str(exc)) from exc
    for path in paths:
        if path.is_file():
            yield path


def read_document(root: str | Path, path: Path) -> CorpusDocument:
    """Read *path* into a :class:`CorpusDocument` keyed relative to *root*."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise CorpusReadError(str(path), str(exc)) from exc
    return CorpusDocument(path=path.relative_to(root).as_posix(), data=data)


def walk_corpus(root: str | Path, *, skip_unreadable: bool = False) -> Iterator[CorpusDocument | CorpusReadError]:
    """Yield each document under *root*.

    When *skip_unreadable* is set, read failures are logged and yielded as
    :class:`CorpusReadError` values so the caller can count them; otherwise
    the first failure is raised and aborts the walk.
    """
    for path in iter_corpus_paths(root):
        try:
            yield read_document(root, path)
        except CorpusReadError as exc:
            if not skip_unreadable:
                raise
            logger.warning("Skipping unreadable doc %s: %s", path, exc)
            yield exc
