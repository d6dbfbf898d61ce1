"""Document discovery and loading for LocalRAG ingestion."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader
from langchain_core.documents import Document as LCDocument

from localrag.errors import DocumentLoadError, IngestionError, UnsupportedFileTypeError
from localrag.metrics.observability import get_logger
from localrag.models import PageUnit

# Loader metadata that is replaced by PageUnit fields.
_RESERVED_METADATA = ("source", "page", "loc")


class DocumentLoader(Protocol):
    """Protocol for loaders turning one file into page units."""

    def load(self, path: Path) -> Sequence[PageUnit]:
        """Parse ``path`` into page units tagged with the file name as source."""


def discover_documents(directory: Path, extensions: Iterable[str] = (".pdf",)) -> List[Path]:
    """Return eligible files in ``directory`` sorted by name; other files are ignored."""

    if not directory.is_dir():
        raise IngestionError(f"Documents directory not found: {directory}")
    allowed = {ext.lower() for ext in extensions}
    return sorted(
        (path for path in directory.iterdir() if path.is_file() and path.suffix.lower() in allowed),
        key=lambda path: path.name,
    )


class LangChainDocumentLoader:
    """Load documents page by page via LangChain community loaders."""

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        ".pdf": PyPDFLoader,
        ".txt": TextLoader,
        ".md": TextLoader,
    }

    _logger = get_logger("ingestion.loader")

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def load(self, path: Path) -> Sequence[PageUnit]:
        suffix = path.suffix.lower()
        loader_cls = self._LOADERS.get(suffix)
        if loader_cls is None:
            raise UnsupportedFileTypeError(
                f"Unsupported document type: {suffix or '<none>'}",
                source=path.name,
            )
        try:
            documents = self._build_loader(loader_cls, path).load()
        except Exception as exc:
            raise DocumentLoadError(f"Failed to load {path.name}: {exc}", source=path.name) from exc

        pages = [self._to_page(document, path, paged=loader_cls is PyPDFLoader) for document in documents]
        self._logger.info("loader.complete", source=path.name, page_count=len(pages))
        return pages

    def _build_loader(self, loader_cls: type[BaseLoader], path: Path) -> BaseLoader:
        if loader_cls is TextLoader:
            return loader_cls(str(path), encoding=self._encoding)
        return loader_cls(str(path))

    @staticmethod
    def _to_page(document: LCDocument, path: Path, *, paged: bool) -> PageUnit:
        raw: Mapping[str, Any] = document.metadata or {}
        page_number: int | None = None
        if paged and isinstance(raw.get("page"), int):
            # pypdf pages are zero based
            page_number = int(raw["page"]) + 1
        metadata: Dict[str, Any] = {k: v for k, v in raw.items() if k not in _RESERVED_METADATA}
        return PageUnit(
            text=document.page_content,
            page_number=page_number,
            source=path.name,
            metadata=metadata,
        )

