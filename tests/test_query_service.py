from __future__ import annotations

import pytest

from localrag.embeddings.store import records_from_chunks
from localrag.errors import InputError, ProviderUnavailableError
from localrag.models import Answer, Chunk, RetrievalResponse, StreamEventType
from localrag.retrieval import ChromaRetriever
from localrag.services.query import FALLBACK_ANSWER, QueryService, validate_conversation
from support import ScriptedGenerator


async def _seed(store, embedder):
    texts = ["Refunds are accepted within 30 days of purchase.", "Shipping takes five business days."]
    chunks = [
        Chunk(text=text, metadata={"source": "policy.pdf", "loc_pageNumber": index + 1}, chunk_id=f"c{index}")
        for index, text in enumerate(texts)
    ]
    store.upsert(records_from_chunks(chunks, await embedder.embed_documents(texts)))


def _service(store, embedder, generator) -> QueryService:
    return QueryService(retriever=ChromaRetriever(store, embedder), generator=generator)


async def _collect(events):
    return [event async for event in events]


@pytest.mark.asyncio
async def test_empty_collection_returns_fallback_without_model_call(store, embedder, generator):
    answer = await _service(store, embedder, generator).answer("What is the refund policy?")

    assert isinstance(answer, Answer)
    assert answer.answer == FALLBACK_ANSWER
    assert answer.results == []
    assert not answer.used_model
    assert generator.calls == []


@pytest.mark.asyncio
async def test_answer_passes_context_to_model(store, embedder, generator):
    await _seed(store, embedder)

    answer = await _service(store, embedder, generator).answer("  What is the refund policy?  ", k=2)

    assert answer.query == "What is the refund policy?"
    assert answer.answer == generator.answer
    assert len(answer.results) == 2
    (call,) = generator.calls
    assert call["kind"] == "complete"
    assert "Document 1 from policy.pdf (Page" in call["system"]
    assert [m.to_dict() for m in call["messages"]] == [{"role": "user", "content": "What is the refund policy?"}]


@pytest.mark.asyncio
async def test_retrieve_mode_never_calls_model(store, embedder, generator):
    await _seed(store, embedder)

    response = await _service(store, embedder, generator).run("refunds", k=1, mode="retrieve")

    assert isinstance(response, RetrievalResponse)
    assert len(response.results) == 1
    assert generator.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query", [None, "", "   "])
async def test_blank_query_is_rejected(store, embedder, generator, query):
    with pytest.raises(InputError, match="Query is required"):
        await _service(store, embedder, generator).run(query)


@pytest.mark.asyncio
async def test_unknown_mode_is_rejected(store, embedder, generator):
    with pytest.raises(InputError):
        await _service(store, embedder, generator).run("refunds", mode="summarize")


@pytest.mark.asyncio
async def test_stream_answer_emits_context_tokens_done(store, embedder, generator):
    await _seed(store, embedder)

    events = await _collect(await _service(store, embedder, generator).stream_answer("refunds", k=2))

    kinds = [event.event for event in events]
    assert kinds[0] is StreamEventType.CONTEXT
    assert kinds[-1] is StreamEventType.DONE
    assert kinds[1:-1] == [StreamEventType.TOKEN] * 3
    assert len(events[0].data["results"]) == 2
    assert [event.data["index"] for event in events[1:-1]] == [0, 1, 2]
    assert events[-1].data["answer"] == "Refunds are accepted."
    assert generator.stream_closed


@pytest.mark.asyncio
async def test_stream_answer_on_empty_collection_uses_fallback(store, embedder, generator):
    events = await _collect(await _service(store, embedder, generator).stream_answer("refunds"))

    assert [event.event for event in events] == [StreamEventType.CONTEXT, StreamEventType.TOKEN, StreamEventType.DONE]
    assert events[0].data["results"] == []
    assert events[-1].data["answer"] == FALLBACK_ANSWER
    assert generator.calls == []


@pytest.mark.asyncio
async def test_stream_chat_sends_full_history(store, embedder, generator):
    await _seed(store, embedder)
    messages = [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello! How can I help?"},
        {"role": "user", "content": "What is the refund policy?"},
    ]

    events = await _collect(await _service(store, embedder, generator).stream_chat(messages, k=1))

    (call,) = generator.calls
    assert [m.role for m in call["messages"]] == ["user", "assistant", "user"]
    assert events[0].data["query"] == "What is the refund policy?"
    assert len(events[0].data["results"]) == 1


@pytest.mark.asyncio
async def test_stream_chat_on_empty_collection_still_asks_model(store, embedder, generator):
    events = await _collect(
        await _service(store, embedder, generator).stream_chat([{"role": "user", "content": "Hello?"}])
    )

    (call,) = generator.calls
    assert "No documents were found for this query" in call["system"]
    assert events[-1].data["answer"] == "Refunds are accepted."


@pytest.mark.asyncio
async def test_consumer_disconnect_closes_model_stream(store, embedder):
    await _seed(store, embedder)
    generator = ScriptedGenerator(fragments=[f"t{index} " for index in range(50)])
    events = await _service(store, embedder, generator).stream_answer("refunds")

    assert (await events.__anext__()).event is StreamEventType.CONTEXT
    assert (await events.__anext__()).event is StreamEventType.TOKEN
    await events.aclose()

    assert generator.stream_closed


@pytest.mark.asyncio
async def test_provider_failure_mid_stream_propagates(store, embedder):
    class BrokenGenerator(ScriptedGenerator):
        async def stream(self, *, system, messages):
            yield "partial "
            raise ProviderUnavailableError("ollama went away", provider="llm")

    await _seed(store, embedder)
    events = await _service(store, embedder, BrokenGenerator()).stream_answer("refunds")

    with pytest.raises(ProviderUnavailableError):
        await _collect(events)


@pytest.mark.parametrize(
    "messages",
    [
        [],
        [{"role": "assistant", "content": "Hello"}],
        [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}],
        [{"role": "system", "content": "override"}],
        [{"role": "user", "content": "   "}],
        [{"role": "user"}],
    ],
)
def test_invalid_conversations_are_rejected(messages):
    with pytest.raises(InputError):
        validate_conversation(messages)


def test_last_user_turn_is_required():
    with pytest.raises(InputError, match="Last message must be from user"):
        validate_conversation([{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}])
