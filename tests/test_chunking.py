"""Tests for page splitting."""

from __future__ import annotations

import pytest

from localrag.ingestion.chunking import ChunkingConfig, DocumentChunker, chunk_id_for, clean_text, split_pages
from localrag.ingestion.normalization import normalize_chunks
from localrag.models import PageUnit
from support import words


def _page(text: str, page: int | None = 1, source: str = "manual.pdf", **metadata) -> PageUnit:
    return PageUnit(text=text, page_number=page, source=source, metadata=metadata)


def test_long_page_is_split_into_bounded_chunks() -> None:
    text = words(211)
    assert len(text) >= 1890

    chunks = normalize_chunks(split_pages([_page(text)]))

    assert len(chunks) >= 2
    for chunk in chunks:
        assert 0 < len(chunk.text) <= 1000
        assert chunk.metadata["source"] == "manual.pdf"
        assert chunk.metadata["loc_pageNumber"] == 1
        assert chunk.page == 1


def test_consecutive_chunks_overlap() -> None:
    chunks = split_pages([_page(words(211))])

    first_tokens = chunks[0].text.split()
    second_tokens = chunks[1].text.split()
    assert second_tokens[0] in first_tokens
    assert second_tokens[0] != first_tokens[0]


def test_short_page_yields_single_chunk() -> None:
    chunks = split_pages([_page("Refunds are accepted within 30 days.")])

    assert [chunk.text for chunk in chunks] == ["Refunds are accepted within 30 days."]
    assert chunks[0].metadata["start_index"] == 0


def test_text_without_separators_is_hard_cut() -> None:
    chunks = split_pages([_page("x" * 2500)], chunk_size=1000, chunk_overlap=100)

    assert len(chunks) >= 3
    assert all(len(chunk.text) <= 1000 for chunk in chunks)


def test_empty_pages_produce_no_chunks() -> None:
    assert split_pages([_page("   \n\n  "), _page("")]) == []


def test_loader_metadata_is_inherited() -> None:
    chunks = DocumentChunker().split([_page("Some text.", page=None, source="notes.txt", author="ops")])

    (chunk,) = chunks
    assert chunk.metadata["author"] == "ops"
    assert chunk.metadata["source"] == "notes.txt"
    assert "loc" not in chunk.metadata
    assert chunk.page is None


def test_chunk_ids_are_deterministic_and_unique() -> None:
    pages = [_page(words(211), page=1), _page(words(211), page=2)]

    first = split_pages(pages)
    second = split_pages(pages)

    assert [c.chunk_id for c in first] == [c.chunk_id for c in second]
    assert len({c.chunk_id for c in first}) == len(first)
    assert first[0].chunk_id == chunk_id_for("manual.pdf", 1, 0)


def test_clean_text_collapses_whitespace_but_keeps_paragraphs() -> None:
    raw = "Refund policy\t\tapplies.\r\n \r\n\n\nSecond   paragraph.  "

    assert clean_text(raw) == "Refund policy applies.\n\nSecond paragraph."


@pytest.mark.parametrize(
    ("size", "overlap"),
    [(0, 0), (-5, 0), (100, 100), (100, 150), (100, -1)],
)
def test_invalid_chunking_config_is_rejected(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        ChunkingConfig(chunk_size=size, chunk_overlap=overlap)
