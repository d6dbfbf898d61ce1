"""Document ingestion pipeline."""

from .chunking import ChunkingConfig, DocumentChunker, split_pages
from .normalization import normalize_chunks, normalize_metadata
from .pipeline import IngestionConfig, IngestionPipeline, IngestionReport, IngestionStatus
from .service import DocumentLoader, LangChainDocumentLoader, discover_documents

__all__ = [
    "ChunkingConfig",
    "DocumentChunker",
    "DocumentLoader",
    "IngestionConfig",
    "IngestionPipeline",
    "IngestionReport",
    "IngestionStatus",
    "LangChainDocumentLoader",
    "discover_documents",
    "normalize_chunks",
    "normalize_metadata",
    "split_pages",
]
