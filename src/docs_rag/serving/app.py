"""FastAPI application exposing the query path as a REST API."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from docs_rag.config import settings
from docs_rag.exceptions import DimensionMismatch, ProviderError, StoreError
from docs_rag.generation.llm import get_llm
from docs_rag.ingestion.embedder import EmbeddingProvider
from docs_rag.retrieval import Retriever, create_store

logger = logging.getLogger(__name__)

app = FastAPI(
    title="docs-rag API",
    version="0.1.0",
    description="Retrieval-augmented answers over an ingested document corpus.",
)


# ── Request / Response schemas ────────────────────────────────────────
class QueryRequest(BaseModel):
    """Incoming question from the user."""

    query: str = Field(min_length=1)
    k: int | None = Field(default=None, ge=1)


class RetrievedDoc(BaseModel):
    path: str | None
    content: str
    distance: float | None


class RetrieveResponse(BaseModel):
    """Retrieved passages and the prompt they produce."""

    documents: list[RetrievedDoc] = []
    prompt: str


# ── Dependencies ──────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_retriever() -> Retriever:
    """Build the process-wide retriever from settings (once)."""
    return Retriever(
        create_store(settings),
        EmbeddingProvider.from_settings(settings),
        llm=get_llm(settings),
        default_k=settings.top_k,
        prompt_template=settings.prompt_template,
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (ProviderError, DimensionMismatch)):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=503, detail=str(exc))


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
def health(retriever: Retriever = Depends(get_retriever)) -> dict[str, str]:
    """Liveness probe; reports whether the vector store answers."""
    if not retriever.store_healthy():
        raise HTTPException(status_code=503, detail="vector store unavailable")
    return {"status": "ok"}


@app.post("/retrieve", response_model=RetrieveResponse)
def retrieve(request: QueryRequest, retriever: Retriever = Depends(get_retriever)) -> RetrieveResponse:
    """Return the nearest passages and the rendered prompt, without generating."""
    try:
        records = retriever.retrieve(request.query, request.k)
    except (ValueError, ProviderError, StoreError) as exc:
        raise _http_error(exc) from exc
    return RetrieveResponse(
        documents=[RetrievedDoc(path=r.path, content=r.text, distance=r.distance) for r in records],
        prompt=retriever.build_prompt(request.query, records),
    )


@app.post("/query")
def query(request: QueryRequest, retriever: Retriever = Depends(get_retriever)) -> StreamingResponse:
    """Stream the model's answer as plain text.

    Retrieval runs before the response starts, so lookup failures become
    proper HTTP errors. A client disconnect closes the stream, which cancels
    generation.
    """
    try:
        fragments = retriever.stream_answer(request.query, request.k)
    except (ValueError, ProviderError, StoreError) as exc:
        raise _http_error(exc) from exc
    return StreamingResponse(fragments, media_type="text/plain; charset=utf-8")
