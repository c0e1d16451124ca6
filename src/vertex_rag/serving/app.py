"""FastAPI application exposing query and upload as server-sent event streams."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from vertex_rag.config import Settings
from vertex_rag.db.repository import DocumentRepository
from vertex_rag.exceptions import UploadValidationError
from vertex_rag.generation.base import GenerationClient
from vertex_rag.generation.llm import get_generation_client
from vertex_rag.generation.messages import Message
from vertex_rag.ingestion.loader import validate_upload
from vertex_rag.ingestion.pipeline import ChunkIngestionPipeline
from vertex_rag.ingestion.storage import BlobStore
from vertex_rag.retrieval.json_store import JsonVectorStore
from vertex_rag.retrieval.retriever import ContextRetriever
from vertex_rag.serving.orchestrator import IngestionOrchestrator, QueryOrchestrator
from vertex_rag.serving.tasks import TaskSupervisor

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 10.0


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Request schemas ───────────────────────────────────────────────────
class QueryRequest(BaseModel):
    """Conversation history plus the session whose documents are searched."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message]
    session_id: str = Field(alias="sessionId", min_length=1)


# ── Wiring ────────────────────────────────────────────────────────────
@dataclass
class Services:
    """Everything the routes need, built once per application."""

    settings: Settings
    client: GenerationClient
    repository: DocumentRepository
    store: JsonVectorStore
    supervisor: TaskSupervisor
    queries: QueryOrchestrator
    uploads: IngestionOrchestrator


def build_services(settings: Settings, client: GenerationClient | None = None) -> Services:
    client = client or get_generation_client(settings)
    repository = DocumentRepository.from_sqlite(settings.sqlite_path)
    store = JsonVectorStore(settings.vector_store_path)
    supervisor = TaskSupervisor()
    retriever = ContextRetriever(client, store, embed_model=settings.embed_model, top_k=settings.top_k)
    pipeline = ChunkIngestionPipeline(
        client,
        repository,
        store,
        embed_model=settings.embed_model,
        batch_size=settings.ingest_batch_size,
    )
    return Services(
        settings=settings,
        client=client,
        repository=repository,
        store=store,
        supervisor=supervisor,
        queries=QueryOrchestrator(client, retriever, supervisor, chat_model=settings.chat_model),
        uploads=IngestionOrchestrator(
            pipeline,
            repository,
            BlobStore(settings.storage_dir),
            supervisor,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
        ),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


# ── Application factory ───────────────────────────────────────────────
def create_app(
    settings: Settings | None = None, *, client: GenerationClient | None = None
) -> FastAPI:
    """Build the application; *client* overrides the configured backend."""
    settings = settings or Settings()
    configure_logging(settings.log_level)
    services = build_services(settings, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.repository.create_tables()
        logger.info("Application startup complete")
        yield
        await services.supervisor.shutdown(SHUTDOWN_GRACE_SECONDS)
        await services.client.aclose()
        await services.repository.dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Vertex RAG API",
        version="0.1.0",
        description="Session-scoped document Q&A over Vertex AI, streamed as SSE.",
        lifespan=lifespan,
    )
    app.state.services = services

    @app.exception_handler(UploadValidationError)
    async def upload_rejected(request: Request, exc: UploadValidationError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok"}

    @app.post("/api/query")
    async def query(body: QueryRequest, request: Request) -> StreamingResponse:
        """Stream retrieval context and the generated answer."""
        stream = _services(request).queries.start(body.messages, body.session_id)
        return stream.to_response()

    @app.post("/api/upload")
    async def upload(
        request: Request,
        file: UploadFile | None = File(default=None),
        session_id: str = Form(alias="sessionId", min_length=1),
    ) -> StreamingResponse:
        """Validate a PDF upload, then stream its ingestion progress."""
        svc = _services(request)
        if file is None:
            raise UploadValidationError("No file")
        validate_upload(
            file.filename, file.content_type, file.size, max_size=svc.settings.max_upload_size
        )
        data = await file.read()
        validate_upload(
            file.filename, file.content_type, len(data), max_size=svc.settings.max_upload_size
        )
        stream = svc.uploads.start(filename=file.filename, data=data, session_id=session_id)
        return stream.to_response()

    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8080, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
