"""Observability helpers for LocalRAG."""

from __future__ import annotations

import logging
from typing import Iterable

import structlog
from prometheus_client import Counter, Gauge, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "localrag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    ingestion_latency = Histogram(
        "localrag_ingestion_duration_seconds",
        "Time spent on a full ingestion run.",
        buckets=(0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
    )
    ingestion_chunks = Histogram(
        "localrag_ingestion_chunk_count",
        "Chunks written per ingestion run.",
        buckets=(0, 10, 50, 100, 500, 1000, 5000),
    )
    ingestion_failed_files = Counter(
        "localrag_ingestion_failed_files_total",
        "Documents skipped because they could not be loaded.",
    )
    retrieval_latency = Histogram(
        "localrag_retrieval_duration_seconds",
        "Time spent retrieving context chunks.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_chunk_count = Histogram(
        "localrag_retrieved_chunk_count",
        "Number of chunks returned by retrieval.",
        buckets=(0, 1, 2, 3, 4, 8, 13),
    )
    similarity_score = Histogram(
        "localrag_similarity_score",
        "Similarity (1 - cosine distance) of retrieved chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "localrag_generation_duration_seconds",
        "Time spent generating answers.",
        buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    streamed_fragments = Counter(
        "localrag_streamed_fragments_total",
        "Answer fragments forwarded to streaming clients.",
    )
    fallback_answers = Counter(
        "localrag_fallback_answers_total",
        "Answers short-circuited because retrieval found nothing.",
    )
    collection_record_count = Gauge(
        "localrag_collection_record_count",
        "Number of records in the active collection.",
        ["collection"],
    )

    @classmethod
    def observe_ingestion(cls, duration_seconds: float, chunk_count: int, failed_files: int = 0) -> None:
        cls.ingestion_latency.observe(duration_seconds)
        cls.ingestion_chunks.observe(chunk_count)
        if failed_files:
            cls.ingestion_failed_files.inc(failed_files)

    @classmethod
    def observe_retrieval(
        cls,
        duration_seconds: float,
        chunk_count: int,
        similarities: Iterable[float],
    ) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_chunk_count.observe(chunk_count)
        for similarity in similarities:
            cls.similarity_score.observe(_clamp_score(similarity))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
