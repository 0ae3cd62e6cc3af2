"""Embedding-provider capability.

The rest of the package sees embeddings only through
:class:`EmbeddingProvider`, which wraps any LangChain ``Embeddings`` and turns
provider failures into :class:`~docs_rag.exceptions.ProviderError`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from docs_rag.exceptions import ProviderError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from docs_rag.config import Settings

logger = logging.getLogger(__name__)


def get_embedding_model(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``huggingface`` runs a local sentence-transformer; ``openai`` talks to the
    OpenAI embeddings API (or any compatible ``llm_base_url``).
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)
    if settings.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {"model": settings.embedding_model, "api_key": settings.openai_api_key or "EMPTY"}
        if settings.llm_base_url:
            kwargs["base_url"] = settings.llm_base_url
        return OpenAIEmbeddings(**kwargs)
    raise ValueError(f"Unsupported embedding_provider={settings.embedding_provider!r}")


class EmbeddingProvider:
    """Order-preserving text → vector capability.

    Parameters
    ----------
    model:
        Any LangChain ``Embeddings`` implementation. Ingestion and queries
        must use the same model; vectors from different models are not
        comparable and this is not detected here.
    """

    def __init__(self, model: Embeddings) -> None:
        self._model = model

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*, one vector per input, in input order."""
        try:
            return self._model.embed_documents(list(texts))
        except Exception as exc:
            raise ProviderError(f"failed to create embeddings: {exc}") from exc

    def embed_query(self, text: str) -> list[float]:
        try:
            return self._model.embed_query(text)
        except Exception as exc:
            raise ProviderError(f"failed to create query embedding: {exc}") from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingProvider:
        logger.info("Using %s embeddings: %s", settings.embedding_provider, settings.embedding_model)
        return cls(get_embedding_model(settings))
