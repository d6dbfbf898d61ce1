"""Error taxonomy shared by the ingestion and query pipelines."""

from __future__ import annotations

from typing import Literal

Provider = Literal["embedding", "vector_store", "llm"]

_REDACTED_DETAILS: dict[str, str] = {
    "embedding": "Embedding provider is unavailable",
    "vector_store": "Vector store is unavailable",
    "llm": "Language model provider is unavailable",
}


class LocalRagError(RuntimeError):
    """Base class for LocalRAG failures."""


class InputError(LocalRagError, ValueError):
    """Raised when a request is malformed (empty query, bad message sequence)."""


class ProviderUnavailableError(LocalRagError):
    """Raised when an embedding, vector-store or language-model call fails."""

    def __init__(self, message: str, *, provider: Provider, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.__cause__ = cause

    @property
    def redacted_detail(self) -> str:
        """Client-safe description without URLs or provider payloads."""

        return _REDACTED_DETAILS.get(self.provider, "Upstream provider is unavailable")


class ProviderResponseError(ProviderUnavailableError):
    """Raised when a provider answers with a payload that cannot be used."""


class IngestionError(LocalRagError):
    """Raised when ingestion cannot proceed."""


class DocumentLoadError(IngestionError):
    """Raised when a single document cannot be parsed."""

    def __init__(self, message: str, *, source: str) -> None:
        super().__init__(message)
        self.source = source


class UnsupportedFileTypeError(DocumentLoadError):
    """Raised when a document extension is not supported by the loader."""


__all__ = [
    "DocumentLoadError",
    "IngestionError",
    "InputError",
    "LocalRagError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "UnsupportedFileTypeError",
]
