"""Retriever — nearest-neighbour lookup and prompt assembly.

This module is the **primary public interface** for the query path.

Usage::

    from docs_rag.retrieval.retriever import Retriever

    retriever = Retriever(store, embedder, llm=llm)
    for fragment in retriever.stream_answer("How do I configure workers?", k=5):
        print(fragment, end="")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from docs_rag.generation.llm import stream_text
from docs_rag.generation.prompts import DEFAULT_PROMPT_TEMPLATE, build_context, render_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from docs_rag.ingestion.embedder import EmbeddingProvider
    from docs_rag.retrieval.base import VectorStoreBase
    from docs_rag.retrieval.models import StoredRecord

logger = logging.getLogger(__name__)


class Retriever:
    """Embed a query, look up its nearest records and render the prompt.

    Parameters
    ----------
    store:
        Vector store populated by the ingestion pipeline.
    embedder:
        Must wrap the same embedding model used for ingestion.
    llm:
        Chat model used by :meth:`stream_answer`; optional for callers that
        only need the rendered prompt.
    default_k:
        Default number of records retrieved.
    prompt_template:
        Template with ``{context}`` and ``{query}`` placeholders.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingProvider,
        *,
        llm: BaseChatModel | None = None,
        default_k: int = 5,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._llm = llm
        self.default_k = default_k
        self.prompt_template = prompt_template

    # -- public API -----------------------------------------------------------

    def retrieve(self, query: str, k: int | None = None) -> list[StoredRecord]:
        """Return up to *k* stored records nearest to *query*, nearest first."""
        if not query.strip():
            raise ValueError("query must not be empty")
        k = self.default_k if k is None else k
        embedding = self._embedder.embed_query(query)
        records = self._store.top_k(embedding, k)
        for rec in records:
            logger.info("Retrieved doc %s (distance=%.4f)", rec.path, rec.distance or 0.0)
        return records

    def assemble_context(self, records: list[StoredRecord]) -> str:
        """Join the contents of *records*, nearest first, one per line."""
        return build_context([rec.text for rec in records])

    def build_prompt(self, query: str, records: list[StoredRecord]) -> str:
        """Render the prompt for *query* from already-retrieved *records*."""
        return render_prompt(self.assemble_context(records), query, self.prompt_template)

    def retrieve_and_assemble(self, query: str, k: int | None = None) -> str:
        """Retrieve the top-*k* records for *query* and return the rendered prompt."""
        return self.build_prompt(query, self.retrieve(query, k))

    def stream_answer(self, query: str, k: int | None = None) -> Iterator[str]:
        """Yield the generative model's answer as it is produced.

        Retrieval happens eagerly, before the first fragment, so a store or
        embedding failure fails the request without a partial answer.
        Closing the generator cancels generation; the store is never
        written to.
        """
        if self._llm is None:
            raise ValueError("Retriever was created without an llm")
        prompt = self.retrieve_and_assemble(query, k)
        logger.info("Sending prompt (%d chars)", len(prompt))
        return stream_text(self._llm, prompt)

    def store_healthy(self) -> bool:
        return self._store.health_check()
