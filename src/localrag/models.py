"""Shared domain models used across the LocalRAG pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping, Sequence, Tuple, Union

Primitive = Union[str, int, float, bool]
FlatMetadata = Mapping[str, Primitive]
EmbeddingVector = Tuple[float, ...]
Role = Literal["user", "assistant"]

PAGE_NUMBER_KEY = "loc_pageNumber"


def format_score(distance: float) -> str:
    """Similarity shown to callers: ``1 - distance`` with four decimals."""

    return f"{1.0 - distance:.4f}"


@dataclass(frozen=True)
class PageUnit:
    """One page of text loaded from a source file."""

    text: str
    page_number: int | None
    source: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """Bounded span of document text plus attribution metadata."""

    text: str
    metadata: Mapping[str, Any]
    chunk_id: str = ""

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", ""))

    @property
    def page(self) -> int | None:
        value = self.metadata.get(PAGE_NUMBER_KEY)
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return None


@dataclass(frozen=True)
class VectorRecord:
    """Persisted unit inside a collection."""

    record_id: str
    vector: EmbeddingVector
    text: str
    metadata: FlatMetadata


@dataclass(frozen=True)
class RetrievalResult:
    """Chunk returned from the vector store with its raw distance."""

    chunk: Chunk
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance

    @property
    def score(self) -> str:
        return format_score(self.distance)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.chunk.text,
            "source": self.chunk.source,
            "page": self.chunk.page,
            "score": self.score,
        }


@dataclass(frozen=True)
class ConversationMessage:
    """Single turn of a caller-owned conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Attribution:
    source: str
    page: int | None = None


@dataclass(frozen=True)
class AssembledContext:
    """Context block handed to the language model."""

    context_text: str
    attributions: Sequence[Attribution]
    has_documents: bool


@dataclass(frozen=True)
class RetrievalResponse:
    query: str
    results: Sequence[RetrievalResult]


@dataclass(frozen=True)
class Answer:
    """Grounded answer produced by the language model."""

    query: str
    answer: str
    results: Sequence[RetrievalResult]
    latency_ms: float = 0.0
    used_model: bool = True


class StreamEventType(str, Enum):
    """Events emitted while streaming an answer."""

    CONTEXT = "context"
    TOKEN = "token"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    event: StreamEventType
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event.value, "data": dict(self.data)}
