"""Split loaded pages into overlapping, size-bounded chunks."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence
from uuid import NAMESPACE_URL, uuid5

from langchain_core.documents import Document as LCDocument
from langchain_text_splitters import RecursiveCharacterTextSplitter

from localrag.models import Chunk, PageUnit

# paragraph, line, sentence, word, character
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")

_INLINE_WHITESPACE = re.compile(r"[ \t\f\v]+")
_LINE_PADDING = re.compile(r" *\n *")
_BLANK_LINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for chunk splitting."""

    chunk_size: int = 1000
    chunk_overlap: int = 200
    separators: tuple[str, ...] = DEFAULT_SEPARATORS

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")


def clean_text(raw: str) -> str:
    """Normalize unicode and inline whitespace while keeping line structure."""

    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ").replace("\r\n", "\n").replace("\r", "\n")
    normalized = _INLINE_WHITESPACE.sub(" ", normalized)
    normalized = _LINE_PADDING.sub("\n", normalized)
    normalized = _BLANK_LINES.sub("\n\n", normalized)
    return normalized.strip()


def chunk_id_for(source: str, page: Any, start_index: Any) -> str:
    """Deterministic record id so re-upserting a corpus overwrites instead of duplicating."""

    return uuid5(NAMESPACE_URL, f"{source}:{page}:{start_index}").hex


class DocumentChunker:
    """Recursive character splitter over page units."""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self._config.chunk_size,
            chunk_overlap=self._config.chunk_overlap,
            separators=list(self._config.separators),
            keep_separator="end",
            add_start_index=True,
        )

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def split(self, pages: Sequence[PageUnit]) -> List[Chunk]:
        documents = [self._to_document(page) for page in pages]
        documents = [doc for doc in documents if doc.page_content]
        chunks: List[Chunk] = []
        for doc in self._splitter.split_documents(documents):
            metadata: Dict[str, Any] = dict(doc.metadata)
            loc = metadata.get("loc")
            page = loc.get("pageNumber") if isinstance(loc, dict) else None
            chunk_id = chunk_id_for(str(metadata.get("source", "")), page, metadata.get("start_index"))
            chunks.append(Chunk(text=doc.page_content, metadata=metadata, chunk_id=chunk_id))
        return chunks

    @staticmethod
    def _to_document(page: PageUnit) -> LCDocument:
        metadata: Dict[str, Any] = dict(page.metadata)
        metadata["source"] = page.source
        if page.page_number is not None:
            metadata["loc"] = {"pageNumber": page.page_number}
        return LCDocument(page_content=clean_text(page.text), metadata=metadata)


def split_pages(
    pages: Sequence[PageUnit],
    *,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> List[Chunk]:
    """Convenience helper for tests and ad-hoc splitting."""

    chunker = DocumentChunker(ChunkingConfig(chunk_size=chunk_size, chunk_overlap=chunk_overlap))
    return chunker.split(pages)
