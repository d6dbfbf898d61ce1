"""Query orchestration combining retrieval and generation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Literal, Mapping, Sequence, Union

from localrag.errors import InputError
from localrag.metrics.observability import PipelineMetrics, get_logger
from localrag.models import (
    Answer,
    ConversationMessage,
    RetrievalResponse,
    RetrievalResult,
    StreamEvent,
    StreamEventType,
)
from localrag.retrieval.service import Retriever
from localrag.services.context import ContextAssembler
from localrag.services.generation import GenerationBackend, TemplateGenerator
from localrag.services.streaming import FragmentChannel

Mode = Literal["retrieve", "generate"]
MODES: tuple[str, ...] = ("retrieve", "generate")

FALLBACK_ANSWER = (
    "I'm sorry, but I couldn't find any relevant information in the documents to answer your question."
)


@dataclass(frozen=True)
class QueryConfig:
    """Configuration for query orchestration."""

    stream_buffer_size: int = 64


def require_query(query: str | None) -> str:
    if query is None or not query.strip():
        raise InputError("Query is required")
    return query.strip()


def validate_conversation(messages: Sequence[Union[ConversationMessage, Mapping[str, Any]]]) -> List[ConversationMessage]:
    """Return typed messages; the sequence must be non-empty and end with a user turn."""

    if not messages:
        raise InputError("Messages are required")
    conversation: List[ConversationMessage] = []
    for message in messages:
        if isinstance(message, ConversationMessage):
            conversation.append(message)
            continue
        role = message.get("role")
        content = message.get("content")
        if role not in ("user", "assistant") or not isinstance(content, str):
            raise InputError("Each message needs a 'user' or 'assistant' role and text content")
        conversation.append(ConversationMessage(role=role, content=content))
    if conversation[-1].role != "user":
        raise InputError("Last message must be from user")
    require_query(conversation[-1].content)
    return conversation


class QueryService:
    """Orchestrates retrieval and generation for incoming questions.

    Holds no per-request state; every call works only on its arguments and the
    collaborators passed in at construction.
    """

    def __init__(
        self,
        retriever: Retriever,
        generator: GenerationBackend | None = None,
        assembler: ContextAssembler | None = None,
        config: QueryConfig | None = None,
    ) -> None:
        self._retriever = retriever
        self._generator = generator or TemplateGenerator()
        self._assembler = assembler or ContextAssembler()
        self._config = config or QueryConfig()
        self._logger = get_logger("query")

    async def run(self, query: str | None, *, k: int | None = None, mode: str = "generate") -> RetrievalResponse | Answer:
        if mode == "retrieve":
            return await self.retrieve(query, k=k)
        if mode == "generate":
            return await self.answer(query, k=k)
        raise InputError(f"Unsupported mode {mode!r}; expected one of {', '.join(MODES)}")

    async def retrieve(self, query: str | None, *, k: int | None = None) -> RetrievalResponse:
        question = require_query(query)
        results = await self._retriever.retrieve(question, k)
        return RetrievalResponse(query=question, results=list(results))

    async def answer(self, query: str | None, *, k: int | None = None) -> Answer:
        start = time.perf_counter()
        question = require_query(query)
        results = list(await self._retriever.retrieve(question, k))
        if not results:
            PipelineMetrics.fallback_answers.inc()
            self._logger.info("generation.fallback", reason="no_results")
            return Answer(
                query=question,
                answer=FALLBACK_ANSWER,
                results=[],
                latency_ms=(time.perf_counter() - start) * 1000,
                used_model=False,
            )

        context = self._assembler.assemble(results)
        system = self._assembler.build_system_prompt(context)
        generation_start = time.perf_counter()
        text = await self._generator.complete(
            system=system,
            messages=[ConversationMessage(role="user", content=question)],
        )
        generation_duration = time.perf_counter() - generation_start
        PipelineMetrics.observe_generation(generation_duration)
        self._logger.info(
            "generation.complete",
            duration_seconds=generation_duration,
            citation_count=len(results),
        )
        return Answer(
            query=question,
            answer=text,
            results=results,
            latency_ms=(time.perf_counter() - start) * 1000,
        )

    async def stream_answer(self, query: str | None, *, k: int | None = None) -> AsyncIterator[StreamEvent]:
        """Retrieve now, then return the event stream for a single question.

        Input and retrieval errors raise here, before any event is produced.
        """

        question = require_query(query)
        results = list(await self._retriever.retrieve(question, k))
        if not results:
            PipelineMetrics.fallback_answers.inc()
            self._logger.info("generation.fallback", reason="no_results", streaming=True)
            return self._fallback_events(question)
        context = self._assembler.assemble(results)
        fragments = self._generator.stream(
            system=self._assembler.build_system_prompt(context),
            messages=[ConversationMessage(role="user", content=question)],
        )
        return self._stream_events(question, results, fragments)

    async def stream_chat(
        self,
        messages: Sequence[Union[ConversationMessage, Mapping[str, Any]]],
        *,
        k: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Conversational variant: the full history goes to the model.

        The last user turn drives retrieval. An empty retrieval does not
        short-circuit; the grounding prompt then asks for a best-effort answer.
        """

        conversation = validate_conversation(messages)
        question = conversation[-1].content.strip()
        results = list(await self._retriever.retrieve(question, k))
        context = self._assembler.assemble(results)
        fragments = self._generator.stream(
            system=self._assembler.build_system_prompt(context),
            messages=conversation,
        )
        return self._stream_events(question, results, fragments)

    async def _stream_events(
        self,
        question: str,
        results: Sequence[RetrievalResult],
        fragments: AsyncIterator[str],
    ) -> AsyncIterator[StreamEvent]:
        yield self._context_event(question, results)
        channel = FragmentChannel(fragments, maxsize=self._config.stream_buffer_size)
        parts: List[str] = []
        start = time.perf_counter()
        try:
            async for fragment in channel.fragments():
                parts.append(fragment)
                PipelineMetrics.streamed_fragments.inc()
                yield StreamEvent(StreamEventType.TOKEN, {"token": fragment, "index": len(parts) - 1})
        finally:
            await channel.close()
        duration = time.perf_counter() - start
        PipelineMetrics.observe_generation(duration)
        self._logger.info(
            "generation.stream_complete",
            duration_seconds=duration,
            fragment_count=len(parts),
            citation_count=len(results),
        )
        yield StreamEvent(StreamEventType.DONE, {"answer": "".join(parts)})

    async def _fallback_events(self, question: str) -> AsyncIterator[StreamEvent]:
        yield self._context_event(question, [])
        yield StreamEvent(StreamEventType.TOKEN, {"token": FALLBACK_ANSWER, "index": 0})
        yield StreamEvent(StreamEventType.DONE, {"answer": FALLBACK_ANSWER})

    @staticmethod
    def _context_event(question: str, results: Sequence[RetrievalResult]) -> StreamEvent:
        return StreamEvent(
            StreamEventType.CONTEXT,
            {"query": question, "results": [result.to_dict() for result in results]},
        )
