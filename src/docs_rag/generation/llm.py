"""LLM initialisation and streaming — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``DOCS_RAG_OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``DOCS_RAG_LLM_BASE_URL`` to a vLLM,
   Ollama or similar server exposing ``/v1/chat/completions``; ``ChatOpenAI``
   works unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

from docs_rag.exceptions import ProviderError

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from docs_rag.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings) -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    endpoint instead of the OpenAI cloud API. A dummy API key (``"EMPTY"``)
    is used because local servers usually do not require authentication.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # LangChain requires a non-empty key even when the server ignores it.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


def stream_text(llm: BaseChatModel, prompt: str) -> Iterator[str]:
    """Yield the model's answer to *prompt* as text fragments.

    Closing the returned generator closes the underlying provider stream,
    which is how callers cancel a generation mid-way.
    """
    try:
        stream = llm.stream(prompt)
    except Exception as exc:
        raise ProviderError(f"failed to start generation: {exc}") from exc
    try:
        for chunk in stream:
            text = chunk.content if isinstance(chunk.content, str) else _join_parts(chunk.content)
            if text:
                yield text
    except GeneratorExit:
        logger.info("Generation cancelled by caller")
        raise
    except Exception as exc:
        raise ProviderError(f"failed to iterate generation stream: {exc}") from exc
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()


def _join_parts(parts: list) -> str:
    """Flatten multi-part message content, keeping only the text parts."""
    texts = []
    for part in parts:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            texts.append(part.get("text", ""))
    return "".join(texts)
