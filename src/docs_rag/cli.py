"""Command-line entry points.

    docs-rag populate --docs-path ./docs
    docs-rag query --query "How do I configure workers?"

Flags override the corresponding ``DOCS_RAG_*`` settings for this run only.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Sequence

from docs_rag.config import Settings, settings
from docs_rag.exceptions import DocsRagError
from docs_rag.generation.llm import get_llm
from docs_rag.ingestion.embedder import EmbeddingProvider
from docs_rag.ingestion.pipeline import IngestionPipeline
from docs_rag.retrieval import Retriever, create_store

logger = logging.getLogger("docs_rag")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docs-rag", description="Paragraph-level RAG over a document corpus")
    parser.add_argument("--db-url", help="URL of the Postgres database to use")
    parser.add_argument("--store", choices=["postgres", "chroma", "memory"], help="Vector store backend")
    parser.add_argument("--log-level", help="Logging level (default from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    populate = sub.add_parser("populate", help="Ingest a directory of documents")
    populate.add_argument("--docs-path", required=True, help="Path to the docs directory to populate from")
    populate.add_argument("--batch-size", type=int, help="Maximum texts per embedding request")
    populate.add_argument(
        "--skip-unreadable",
        action="store_true",
        default=None,
        help="Skip files that cannot be read instead of aborting",
    )

    query = sub.add_parser("query", help="Ask a question against the ingested corpus")
    query.add_argument("--query", required=True, help="What do you want to know about?")
    query.add_argument("-k", type=int, help="Number of documents to retrieve")
    query.add_argument("--prompt-only", action="store_true", help="Print the rendered prompt instead of generating")
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides = {
        "database_url": args.db_url,
        "vector_store": args.store,
        "log_level": args.log_level,
        "embed_batch_size": getattr(args, "batch_size", None),
        "skip_unreadable": getattr(args, "skip_unreadable", None),
    }
    update = {key: value for key, value in overrides.items() if value is not None}
    return Settings.model_validate({**settings.model_dump(), **update})


def populate(cfg: Settings, docs_path: str) -> int:
    with create_store(cfg) as store:
        pipeline = IngestionPipeline(
            store,
            EmbeddingProvider.from_settings(cfg),
            batch_size=cfg.embed_batch_size,
            skip_unreadable=cfg.skip_unreadable,
        )
        report = pipeline.run(docs_path)
    print(report.summary())
    return 0 if report.ok else 1


def query(cfg: Settings, text: str, k: int | None, prompt_only: bool = False) -> int:
    with create_store(cfg) as store:
        retriever = Retriever(
            store,
            EmbeddingProvider.from_settings(cfg),
            llm=None if prompt_only else get_llm(cfg),
            default_k=cfg.top_k,
            prompt_template=cfg.prompt_template,
        )
        if prompt_only:
            print(retriever.retrieve_and_assemble(text, k))
            return 0

        fragments = retriever.stream_answer(text, k)
        before = time.monotonic()
        try:
            for fragment in fragments:
                sys.stdout.write(fragment)
                sys.stdout.flush()
        finally:
            fragments.close()
            print(f"\nResponse complete, time taken: {time.monotonic() - before:.1f}s")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = _settings_for(args)
    configure_logging(cfg.log_level)
    try:
        if args.command == "populate":
            return populate(cfg, args.docs_path)
        return query(cfg, args.query, args.k, args.prompt_only)
    except (DocsRagError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
