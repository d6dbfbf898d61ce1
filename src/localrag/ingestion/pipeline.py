"""One-shot ingestion run: documents directory -> Chroma collection."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Sequence

from localrag.embeddings.service import EmbeddingBackend
from localrag.embeddings.store import VectorStore, records_from_chunks
from localrag.errors import DocumentLoadError
from localrag.ingestion.chunking import DocumentChunker
from localrag.ingestion.normalization import normalize_chunks
from localrag.ingestion.service import DocumentLoader, discover_documents
from localrag.metrics.observability import PipelineMetrics, get_logger
from localrag.models import PageUnit


class IngestionStatus(str, Enum):
    SKIPPED_EXISTING = "skipped_existing"
    NO_DOCUMENTS = "no_documents"
    COMPLETED = "completed"


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for an ingestion run."""

    documents_dir: Path = Path("/app/documents")
    extensions: tuple[str, ...] = (".pdf",)


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""

    status: IngestionStatus
    collection: str
    existing_records: int = 0
    files_discovered: List[str] = field(default_factory=list)
    files_loaded: List[str] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    pages: int = 0
    chunks: int = 0
    records_written: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "collection": self.collection,
            "existing_records": self.existing_records,
            "files_discovered": list(self.files_discovered),
            "files_loaded": list(self.files_loaded),
            "failed_files": dict(self.failed_files),
            "pages": self.pages,
            "chunks": self.chunks,
            "records_written": self.records_written,
            "duration_seconds": self.duration_seconds,
        }


class IngestionPipeline:
    """Idempotency check, discovery, load, chunk, normalize, embed, store.

    The run is at-most-once per empty collection: a collection holding any
    record is left untouched. All chunks are embedded before the first write,
    so an unreachable embedding provider aborts the run with nothing stored.
    Errors from the embedding provider or the vector store propagate; a
    document that fails to load is logged and skipped.
    """

    def __init__(
        self,
        *,
        loader: DocumentLoader,
        chunker: DocumentChunker,
        embedder: EmbeddingBackend,
        store: VectorStore,
        config: IngestionConfig | None = None,
    ) -> None:
        self._loader = loader
        self._chunker = chunker
        self._embedder = embedder
        self._store = store
        self._config = config or IngestionConfig()
        self._logger = get_logger("ingestion")

    async def run(self) -> IngestionReport:
        start = time.perf_counter()
        report = IngestionReport(status=IngestionStatus.COMPLETED, collection=self._store.collection_name)

        existing = await asyncio.to_thread(self._store.count)
        if existing > 0:
            self._logger.info("ingestion.skipped", collection=report.collection, existing_records=existing)
            report.status = IngestionStatus.SKIPPED_EXISTING
            report.existing_records = existing
            return self._finish(report, start)

        paths = discover_documents(self._config.documents_dir, self._config.extensions)
        report.files_discovered = [path.name for path in paths]
        if not paths:
            self._logger.warning(
                "ingestion.no_documents",
                documents_dir=str(self._config.documents_dir),
                extensions=list(self._config.extensions),
            )
            report.status = IngestionStatus.NO_DOCUMENTS
            return self._finish(report, start)

        pages = await self._load_all(paths, report)
        report.pages = len(pages)

        chunks = normalize_chunks(self._chunker.split(pages))
        report.chunks = len(chunks)
        self._logger.info("ingestion.chunked", page_count=len(pages), chunk_count=len(chunks))
        if not chunks:
            return self._finish(report, start)

        vectors = await self._embedder.embed_documents([chunk.text for chunk in chunks])
        records = records_from_chunks(chunks, vectors)
        written = await asyncio.to_thread(self._store.upsert, records)
        report.records_written = len(written)
        return self._finish(report, start)

    async def _load_all(self, paths: Sequence[Path], report: IngestionReport) -> List[PageUnit]:
        pages: List[PageUnit] = []
        for path in paths:
            try:
                loaded = await asyncio.to_thread(self._loader.load, path)
            except DocumentLoadError as exc:
                self._logger.error("ingestion.file_failed", source=exc.source, detail=str(exc))
                report.failed_files[exc.source] = str(exc)
                continue
            report.files_loaded.append(path.name)
            pages.extend(loaded)
        return pages

    def _finish(self, report: IngestionReport, start: float) -> IngestionReport:
        report.duration_seconds = time.perf_counter() - start
        PipelineMetrics.observe_ingestion(
            report.duration_seconds,
            report.records_written,
            failed_files=len(report.failed_files),
        )
        self._logger.info(
            "ingestion.complete",
            status=report.status.value,
            collection=report.collection,
            files_loaded=len(report.files_loaded),
            failed_files=len(report.failed_files),
            chunk_count=report.chunks,
            records_written=report.records_written,
            duration_seconds=report.duration_seconds,
        )
        return report
