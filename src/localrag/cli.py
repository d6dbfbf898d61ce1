"""Command line entry points: run ingestion or a one-off query."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence

from localrag.api.schemas import GenerateResponse, RetrieveResponse
from localrag.config import Settings, get_settings
from localrag.dependencies import build_ingestion_pipeline, build_query_service
from localrag.errors import IngestionError, InputError, ProviderUnavailableError
from localrag.ingestion.pipeline import IngestionReport
from localrag.metrics.observability import get_logger
from localrag.models import Answer

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _with_overrides(settings: Settings, **overrides: object) -> Settings:
    values = {key: value for key, value in overrides.items() if value is not None}
    if not values:
        return settings
    return settings.model_copy(update=values)


def run_ingestion(settings: Settings) -> IngestionReport:
    pipeline = build_ingestion_pipeline(settings)
    return asyncio.run(pipeline.run())


def run_query(settings: Settings, question: str, *, k: int | None, mode: str) -> dict:
    service = build_query_service(settings)
    result = asyncio.run(service.run(question, k=k, mode=mode))
    if isinstance(result, Answer):
        return GenerateResponse.from_answer(result).model_dump()
    return RetrieveResponse.from_response(result).model_dump()


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="localrag", description="Question answering over a local document corpus.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Embed the documents directory into the vector store.")
    ingest.add_argument("--documents-dir", type=Path, default=None, help="Directory holding the source documents")
    ingest.add_argument("--collection", type=str, default=None, help="Target collection name")

    query = subparsers.add_parser("query", help="Ask a single question and print the JSON response.")
    query.add_argument("question", type=str, help="Question to answer")
    query.add_argument("--k", type=int, default=None, help="Number of chunks to retrieve")
    query.add_argument("--mode", choices=("retrieve", "generate"), default="generate")
    query.add_argument("--collection", type=str, default=None, help="Collection to search")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logger = get_logger("cli")
    settings = _with_overrides(
        get_settings(),
        documents_dir=getattr(args, "documents_dir", None),
        collection_name=args.collection,
    )

    try:
        if args.command == "ingest":
            report = run_ingestion(settings)
            print(json.dumps(report.to_dict(), indent=2))
        else:
            payload = run_query(settings, args.question, k=args.k, mode=args.mode)
            print(json.dumps(payload, indent=2))
    except InputError as exc:
        print(f"Invalid request: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except (ProviderUnavailableError, IngestionError) as exc:
        logger.error("cli.failed", command=args.command, detail=str(exc))
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
