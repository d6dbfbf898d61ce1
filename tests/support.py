"""Test doubles and fixture builders shared across the suite."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, List, Sequence

from localrag.embeddings.service import EmbeddingConfig, HashEmbeddingBackend
from localrag.models import ConversationMessage


def make_pdf(path: Path, pages: Sequence[str]) -> Path:
    """Write a minimal single-font PDF with one text line per page."""

    objects: List[bytes] = []
    page_ids = [3 + index * 2 for index in range(len(pages))]
    font_id = 3 + len(pages) * 2
    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects.append(f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode())
    for pid, text in zip(page_ids, pages):
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 {font_id} 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode()
        )
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        stream = f"BT /F1 10 Tf 20 700 Td ({escaped}) Tj ET".encode("latin-1")
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    body = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, obj in enumerate(objects, start=1):
        offsets.append(len(body))
        body += b"%d 0 obj\n" % number + obj + b"\nendobj\n"
    xref_offset = len(body)
    body += b"xref\n0 %d\n" % (len(objects) + 1)
    body += b"0000000000 65535 f \n"
    for offset in offsets:
        body += b"%010d 00000 n \n" % offset
    body += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
    path.write_bytes(bytes(body))
    return path


def words(count: int, prefix: str = "word") -> str:
    """``count`` distinct nine-character tokens separated by spaces."""

    return " ".join(f"{prefix}{index:04d}" for index in range(count))


class ScriptedGenerator:
    """Generation backend double recording every call."""

    def __init__(self, answer: str = "Refunds are accepted within 30 days.", fragments: Sequence[str] | None = None) -> None:
        self.answer = answer
        self.fragments = list(fragments) if fragments is not None else ["Refunds ", "are ", "accepted."]
        self.calls: List[dict] = []
        self.stream_closed = False

    async def complete(self, *, system: str, messages: Sequence[ConversationMessage]) -> str:
        self.calls.append({"kind": "complete", "system": system, "messages": list(messages)})
        return self.answer

    async def stream(self, *, system: str, messages: Sequence[ConversationMessage]) -> AsyncIterator[str]:
        self.calls.append({"kind": "stream", "system": system, "messages": list(messages)})
        try:
            for fragment in self.fragments:
                yield fragment
        finally:
            self.stream_closed = True


class CountingEmbedder(HashEmbeddingBackend):
    """Hash embeddings that count provider round-trips."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        super().__init__(config or EmbeddingConfig(dim=16, use_model=False))
        self.query_calls = 0
        self.document_calls = 0

    async def embed_query(self, text: str):
        self.query_calls += 1
        return await super().embed_query(text)

    async def embed_documents(self, texts):
        self.document_calls += 1
        return await super().embed_documents(texts)

