"""Shared fixtures: in-memory Chroma, hash embeddings and a scripted generator."""

from __future__ import annotations

from uuid import uuid4

import chromadb
import pytest

from localrag.embeddings.store import ChromaVectorStore, VectorStoreConfig
from support import CountingEmbedder, ScriptedGenerator


@pytest.fixture
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture
def store() -> ChromaVectorStore:
    config = VectorStoreConfig(collection_name=f"test-{uuid4().hex[:12]}", url=None)
    return ChromaVectorStore(config, client=chromadb.EphemeralClient())


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()
