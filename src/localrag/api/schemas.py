"""Pydantic models for the LocalRAG API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from localrag.models import Answer, RetrievalResponse, RetrievalResult


class QueryRequest(BaseModel):
    query: Optional[str] = Field(default=None, description="End-user question to answer")
    k: Optional[int] = Field(default=None, description="Number of chunks to retrieve (default 4)")
    mode: Literal["retrieve", "generate"] = Field(
        default="generate",
        description="'retrieve' returns matching chunks only, 'generate' also asks the language model",
    )


class MessagePart(BaseModel):
    type: str = "text"
    text: Optional[str] = None


class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None
    parts: Optional[List[MessagePart]] = Field(
        default=None,
        description="UI-style message parts; the first text part is used when content is absent",
    )

    def as_dict(self) -> Dict[str, Any]:
        content = self.content
        if content is None and self.parts:
            first = self.parts[0]
            content = first.text if first.type == "text" else None
        return {"role": self.role, "content": content if content is not None else ""}


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    k: Optional[int] = Field(default=None, description="Number of chunks to retrieve (default 4)")


class RetrievedDocument(BaseModel):
    content: str
    source: str
    page: Optional[int] = None
    score: str = Field(..., description="Similarity (1 - distance) with four decimals")

    @classmethod
    def from_result(cls, result: RetrievalResult) -> "RetrievedDocument":
        return cls(**result.to_dict())


class RetrieveResponse(BaseModel):
    query: str
    results: List[RetrievedDocument]

    @classmethod
    def from_response(cls, response: RetrievalResponse) -> "RetrieveResponse":
        return cls(query=response.query, results=[RetrievedDocument.from_result(r) for r in response.results])


class GenerateResponse(BaseModel):
    query: str
    answer: str
    results: List[RetrievedDocument]

    @classmethod
    def from_answer(cls, answer: Answer) -> "GenerateResponse":
        return cls(
            query=answer.query,
            answer=answer.answer,
            results=[RetrievedDocument.from_result(r) for r in answer.results],
        )


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    correlation_id: Optional[str] = None


class IndexStatsResponse(BaseModel):
    collection: str
    total_chunks: int
