"""Paragraph chunking.

A paragraph is a span of text delimited by two consecutive newlines.
Paragraphs are never merged or further subdivided; oversize paragraphs are
left for the embedding provider to accept or reject.
"""

from __future__ import annotations

from collections.abc import Iterator

PARAGRAPH_SEPARATOR = "\n\n"


def iter_chunks(raw: bytes | str) -> Iterator[str]:
    """Yield trimmed, non-empty paragraphs of *raw* in document order.

    Bytes are decoded as UTF-8; undecodable sequences are replaced rather
    than failing the document.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    start = 0
    while True:
        end = text.find(PARAGRAPH_SEPARATOR, start)
        if end < 0:
            break
        span = text[start:end].strip()
        if span:
            yield span
        start = end + len(PARAGRAPH_SEPARATOR)

    tail = text[start:].strip()
    if tail:
        yield tail


def chunk(raw: bytes | str) -> list[str]:
    """Split *raw* into paragraphs.

    Parameters
    ----------
    raw:
        File contents, as bytes or already-decoded text.

    Returns
    -------
    list[str]
        Paragraphs with leading/trailing whitespace removed. All-whitespace
        spans are dropped, so an empty or blank input yields ``[]``.
    """
    return list(iter_chunks(raw))
