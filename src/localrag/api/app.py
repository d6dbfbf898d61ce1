"""FastAPI application exposing the LocalRAG query pipeline."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import AsyncIterator, Union
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from localrag.api.schemas import (
    ChatRequest,
    ErrorResponse,
    GenerateResponse,
    IndexStatsResponse,
    QueryRequest,
    RetrieveResponse,
)
from localrag.config import Settings, get_settings
from localrag.dependencies import build_embedder, build_query_service, build_store
from localrag.embeddings.store import VectorStore
from localrag.errors import InputError, ProviderUnavailableError
from localrag.metrics.observability import (
    PipelineMetrics,
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
    get_logger,
)
from localrag.models import Answer, StreamEvent, StreamEventType
from localrag.services.query import QueryService

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass(frozen=True)
class AppDependencies:
    store: VectorStore
    query_service: QueryService


def _build_dependencies(settings: Settings) -> AppDependencies:
    store = build_store(settings)
    query_service = build_query_service(settings, store=store, embedder=build_embedder(settings))
    return AppDependencies(store=store, query_service=query_service)


def format_sse(event: StreamEvent) -> str:
    return f"event: {event.event.value}\ndata: {json.dumps(dict(event.data))}\n\n"


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="LocalRAG API", version="0.1.0")
    app.state.dependencies = deps

    # Optional CORS
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(InputError)
    async def handle_input_error(request: Request, exc: InputError) -> JSONResponse:
        logger.info("request.rejected", detail=str(exc))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(ProviderUnavailableError)
    async def handle_provider_error(request: Request, exc: ProviderUnavailableError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("provider.unavailable", provider=exc.provider, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Failed to process query",
                "details": exc.redacted_detail,
                "correlation_id": correlation_id,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_store(dep: AppDependencies = Depends(get_dependencies)) -> VectorStore:
        return dep.store

    def get_query_service(dep: AppDependencies = Depends(get_dependencies)) -> QueryService:
        return dep.query_service

    async def stream_events(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
        try:
            async for event in events:
                yield format_sse(event)
        except ProviderUnavailableError as exc:
            logger.error("stream.failed", provider=exc.provider, detail=str(exc))
            yield format_sse(
                StreamEvent(
                    StreamEventType.ERROR,
                    {"error": "Failed to process chat", "details": exc.redacted_detail},
                )
            )
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    @app.post("/query", response_model=Union[GenerateResponse, RetrieveResponse], responses=ERROR_RESPONSES)
    async def query_documents(
        payload: QueryRequest,
        service: QueryService = Depends(get_query_service),
    ) -> Union[GenerateResponse, RetrieveResponse]:
        result = await service.run(payload.query, k=payload.k, mode=payload.mode)
        if isinstance(result, Answer):
            return GenerateResponse.from_answer(result)
        return RetrieveResponse.from_response(result)

    @app.post("/query/stream", responses=ERROR_RESPONSES)
    async def query_stream(
        payload: QueryRequest,
        service: QueryService = Depends(get_query_service),
    ) -> StreamingResponse:
        if payload.mode != "generate":
            raise InputError("Streaming is only available in generate mode")
        events = await service.stream_answer(payload.query, k=payload.k)
        return StreamingResponse(stream_events(events), media_type="text/event-stream", headers=SSE_HEADERS)

    @app.post("/chat", responses=ERROR_RESPONSES)
    async def chat(
        payload: ChatRequest,
        service: QueryService = Depends(get_query_service),
    ) -> StreamingResponse:
        messages = [message.as_dict() for message in payload.messages]
        events = await service.stream_chat(messages, k=payload.k)
        return StreamingResponse(stream_events(events), media_type="text/event-stream", headers=SSE_HEADERS)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from localrag import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(store: VectorStore = Depends(get_store)) -> JSONResponse:
        try:
            await asyncio.to_thread(store.count)
        except ProviderUnavailableError as exc:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "error", "details": exc.redacted_detail},
            )
        return JSONResponse(content={"status": "ready"})

    @app.get("/index/stats", response_model=IndexStatsResponse)
    async def index_stats(store: VectorStore = Depends(get_store)) -> IndexStatsResponse:
        total = await asyncio.to_thread(store.count)
        PipelineMetrics.collection_record_count.labels(collection=store.collection_name).set(total)
        return IndexStatsResponse(collection=store.collection_name, total_chunks=total)

    return app
