"""Translate :class:`Settings` into the config structs each component takes."""

from __future__ import annotations

from localrag.config import Settings
from localrag.embeddings import (
    ChromaVectorStore,
    EmbeddingBackend,
    EmbeddingConfig,
    VectorStoreConfig,
    build_embedding_backend,
)
from localrag.ingestion import (
    ChunkingConfig,
    DocumentChunker,
    IngestionConfig,
    IngestionPipeline,
    LangChainDocumentLoader,
)
from localrag.retrieval import ChromaRetriever, RetrievalConfig
from localrag.services import ContextAssembler, GenerationConfig, QueryService, build_generator


def embedding_config(settings: Settings) -> EmbeddingConfig:
    return EmbeddingConfig(
        model=settings.embedding_model,
        base_url=settings.ollama_url,
        dim=settings.embedding_dim,
        batch_size=settings.embedding_batch_size,
        timeout_seconds=settings.request_timeout_seconds,
        use_model=settings.use_model_embeddings,
    )


def vector_store_config(settings: Settings) -> VectorStoreConfig:
    return VectorStoreConfig(
        collection_name=settings.collection_name,
        url=settings.chroma_url,
        persist_directory=settings.chroma_persist_dir,
        upsert_batch_size=settings.upsert_batch_size,
    )


def generation_config(settings: Settings) -> GenerationConfig:
    return GenerationConfig(
        model=settings.llm_model,
        base_url=settings.ollama_url,
        temperature=settings.llm_temperature,
        timeout_seconds=settings.request_timeout_seconds,
        use_model=settings.use_model_generator,
    )


def build_store(settings: Settings) -> ChromaVectorStore:
    return ChromaVectorStore(vector_store_config(settings))


def build_embedder(settings: Settings) -> EmbeddingBackend:
    return build_embedding_backend(embedding_config(settings))


def build_query_service(
    settings: Settings,
    *,
    store: ChromaVectorStore | None = None,
    embedder: EmbeddingBackend | None = None,
) -> QueryService:
    retriever = ChromaRetriever(
        store or build_store(settings),
        embedder or build_embedder(settings),
        RetrievalConfig(top_k=settings.top_k, max_top_k=settings.max_top_k),
    )
    return QueryService(
        retriever=retriever,
        generator=build_generator(generation_config(settings)),
        assembler=ContextAssembler(),
    )


def build_ingestion_pipeline(
    settings: Settings,
    *,
    store: ChromaVectorStore | None = None,
    embedder: EmbeddingBackend | None = None,
) -> IngestionPipeline:
    return IngestionPipeline(
        loader=LangChainDocumentLoader(),
        chunker=DocumentChunker(
            ChunkingConfig(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap),
        ),
        embedder=embedder or build_embedder(settings),
        store=store or build_store(settings),
        config=IngestionConfig(
            documents_dir=settings.documents_dir,
            extensions=settings.document_extensions_tuple,
        ),
    )
