"""Flatten loader metadata into the primitive-only shape Chroma accepts."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence

from localrag.models import Chunk, Primitive


def _is_primitive(value: Any) -> bool:
    return isinstance(value, (str, bool, int, float))


def _nested_items(value: Any) -> Iterable[tuple[str, Any]]:
    if isinstance(value, Mapping):
        return ((str(key), nested) for key, nested in value.items())
    if isinstance(value, (list, tuple)):
        return ((str(index), nested) for index, nested in enumerate(value))
    return ()


def normalize_metadata(raw: Mapping[str, Any]) -> Dict[str, Primitive]:
    """Return a flat copy of ``raw`` holding only str/int/float/bool values.

    Nested mappings (and lists, keyed by position) are descended exactly one
    level and emitted as ``<key>_<nestedKey>``; anything deeper is dropped.
    ``None`` values never survive. Already-flat input is returned unchanged.
    """

    clean: Dict[str, Primitive] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if _is_primitive(value):
            clean[str(key)] = value
            continue
        for nested_key, nested_value in _nested_items(value):
            if nested_value is not None and _is_primitive(nested_value):
                clean[f"{key}_{nested_key}"] = nested_value
    return clean


def normalize_chunks(chunks: Sequence[Chunk]) -> List[Chunk]:
    return [
        Chunk(text=chunk.text, metadata=normalize_metadata(chunk.metadata), chunk_id=chunk.chunk_id)
        for chunk in chunks
    ]
