"""Generation backends for LocalRAG."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Protocol, Sequence

import httpx

from localrag.errors import ProviderResponseError, ProviderUnavailableError
from localrag.models import ConversationMessage

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "mistral"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.7
    timeout_seconds: float = 120.0
    use_model: bool = True


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    async def complete(self, *, system: str, messages: Sequence[ConversationMessage]) -> str:
        """Return the full answer for the conversation."""

    def stream(self, *, system: str, messages: Sequence[ConversationMessage]) -> AsyncIterator[str]:
        """Yield answer fragments in arrival order."""


def _chat_messages(system: str, messages: Sequence[ConversationMessage]) -> List[Dict[str, str]]:
    return [{"role": "system", "content": system}, *(message.to_dict() for message in messages)]


class TemplateGenerator:
    """Simple deterministic generator used for tests and offline environments."""

    async def complete(self, *, system: str, messages: Sequence[ConversationMessage]) -> str:
        question = messages[-1].content if messages else ""
        sources = re.findall(r"^Document \d+ from (.+?):$", system, flags=re.MULTILINE)
        if not sources:
            return f"I could not find documents relevant to '{question}'."
        listed = "\n".join(f"[{index}] {source}" for index, source in enumerate(sources, start=1))
        return (
            f"Answer: Based on the provided documents, here is the best match for your question '{question}'.\n"
            f"Sources:\n{listed}"
        )

    async def stream(self, *, system: str, messages: Sequence[ConversationMessage]) -> AsyncIterator[str]:
        text = await self.complete(system=system, messages=messages)
        for fragment in re.findall(r"\S+\s*", text):
            yield fragment


class OllamaGenerator:
    """Generator calling the Ollama ``/api/chat`` endpoint."""

    def __init__(
        self,
        config: GenerationConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or GenerationConfig()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    def _payload(self, system: str, messages: Sequence[ConversationMessage], *, stream: bool) -> Dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": _chat_messages(system, messages),
            "stream": stream,
            "options": {"temperature": self._config.temperature},
        }

    async def complete(self, *, system: str, messages: Sequence[ConversationMessage]) -> str:
        payload = self._payload(system, messages, stream=False)
        try:
            async with self._client() as client:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise self._unavailable(exc) from exc
        except ValueError as exc:
            raise ProviderResponseError("Language model returned invalid JSON", provider="llm", cause=exc) from exc
        content = data.get("message", {}).get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise ProviderResponseError("Language model response has no message content", provider="llm")
        return content

    async def stream(self, *, system: str, messages: Sequence[ConversationMessage]) -> AsyncIterator[str]:
        payload = self._payload(system, messages, stream=True)
        try:
            async with self._client() as client:
                async with client.stream("POST", "/api/chat", json=payload) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        data = self._decode_line(line)
                        content = data.get("message", {}).get("content")
                        if content:
                            yield content
                        if data.get("done"):
                            break
        except httpx.HTTPError as exc:
            raise self._unavailable(exc) from exc

    @staticmethod
    def _decode_line(line: str) -> Dict[str, Any]:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ProviderResponseError("Language model stream sent invalid JSON", provider="llm", cause=exc) from exc
        if not isinstance(data, dict):
            raise ProviderResponseError("Language model stream sent a non-object line", provider="llm")
        if data.get("error"):
            raise ProviderResponseError(f"Language model error: {data['error']}", provider="llm")
        return data

    def _unavailable(self, exc: httpx.HTTPError) -> ProviderUnavailableError:
        LOGGER.error("Chat request to %s failed: %s", self._config.base_url, exc)
        return ProviderUnavailableError(f"Language model request failed: {exc}", provider="llm", cause=exc)


def build_generator(
    config: GenerationConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GenerationBackend:
    if not config.use_model:
        LOGGER.info("Generator running in template-only mode.")
        return TemplateGenerator()
    return OllamaGenerator(config, transport=transport)
