"""Unit tests for the query and upload flows behind the event stream."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from conftest import FakeGenerationClient, make_pdf
from vertex_rag.db.models import DocumentRow
from vertex_rag.db.repository import DocumentRepository
from vertex_rag.ingestion.pipeline import ChunkIngestionPipeline
from vertex_rag.ingestion.storage import BlobStore
from vertex_rag.retrieval.json_store import JsonVectorStore
from vertex_rag.retrieval.retriever import ContextRetriever
from vertex_rag.serving.events import EventStream
from vertex_rag.serving.orchestrator import IngestionOrchestrator, QueryOrchestrator
from vertex_rag.serving.tasks import TaskSupervisor


async def _events(stream: EventStream) -> list[Any]:
    """Collect every payload, JSON-decoding where possible."""
    payloads = []
    async for frame in stream.send():
        data = frame.removeprefix("data: ").rstrip("\n")
        try:
            payloads.append(json.loads(data))
        except json.JSONDecodeError:
            payloads.append(data)
    return payloads


class FailingGenerationClient(FakeGenerationClient):
    async def generate(self, model_id, messages):
        raise RuntimeError("backend unavailable")

    async def embed(self, model_id, text):
        raise RuntimeError("embedding quota exceeded")


@pytest.fixture()
def store(tmp_path: Path) -> JsonVectorStore:
    return JsonVectorStore(tmp_path / "vectors.json")


@pytest_asyncio.fixture()
async def repository(tmp_path: Path):
    repo = DocumentRepository.from_sqlite(tmp_path / "dev.sqlite")
    await repo.create_tables()
    yield repo
    await repo.dispose()


def _uploads(client, repository, store, tmp_path: Path, supervisor: TaskSupervisor):
    pipeline = ChunkIngestionPipeline(client, repository, store)
    return IngestionOrchestrator(pipeline, repository, BlobStore(tmp_path / "blobs"), supervisor)


# ── Query ──────────────────────────────────────────────────────────────


class TestQueryOrchestrator:
    @pytest.mark.asyncio
    async def test_streams_context_then_answer(self, store: JsonVectorStore) -> None:
        client = FakeGenerationClient(reply="the answer")
        supervisor = TaskSupervisor()
        orchestrator = QueryOrchestrator(client, ContextRetriever(client, store), supervisor)

        stream = orchestrator.start([{"role": "user", "content": "question?"}], "s1")
        events = await _events(stream)

        assert events[0]["message"] == "Found relevant documents, generating response..."
        assert events[1:] == [{"response": "the answer"}]
        assert stream.closed
        await supervisor.join(timeout=1)
        assert supervisor.active == 0

    @pytest.mark.asyncio
    async def test_prompt_carries_system_context(self, store: JsonVectorStore) -> None:
        client = FakeGenerationClient()
        supervisor = TaskSupervisor()
        orchestrator = QueryOrchestrator(client, ContextRetriever(client, store), supervisor)

        await _events(orchestrator.start([{"role": "user", "content": "hi"}], "s1"))

        (prompt,) = client.generate_calls
        assert prompt[0]["role"] == "system"
        assert prompt[1] == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_failure_becomes_error_event(self, store: JsonVectorStore) -> None:
        client = FailingGenerationClient()
        supervisor = TaskSupervisor()
        orchestrator = QueryOrchestrator(client, ContextRetriever(client, store), supervisor)

        events = await _events(orchestrator.start([{"role": "user", "content": "q"}], "s1"))

        assert events == [{"error": "embedding quota exceeded"}]


# ── Upload ─────────────────────────────────────────────────────────────


class TestIngestionOrchestrator:
    @pytest.mark.asyncio
    async def test_pdf_is_stored_chunked_and_indexed(
        self, repository: DocumentRepository, store: JsonVectorStore, tmp_path: Path
    ) -> None:
        supervisor = TaskSupervisor()
        uploads = _uploads(FakeGenerationClient(), repository, store, tmp_path, supervisor)
        data = make_pdf("Quarterly revenue grew")

        events = await _events(uploads.start(filename="report.pdf", data=data, session_id="s1"))

        messages = [e["message"] for e in events]
        assert messages[:3] == [
            "Extracting text from PDF...",
            "Storing document...",
            "Splitting text into chunks...",
        ]
        assert messages[3] == "Embedding... (100.00%)"
        final = events[-1]
        assert final["message"] == "Inserted document"
        assert final["name"] == "report.pdf"
        assert final["size"] == len(data)
        assert final["chunks"] == 1

        async with repository._sessions() as session:
            document = await session.get(DocumentRow, final["documentId"])
        assert "Quarterly revenue grew" in document.text_content
        assert Path(document.r2_url).read_bytes() == data
        assert Path(document.r2_url).parent.name == "s1"
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_unreadable_pdf_reports_error(
        self, repository: DocumentRepository, store: JsonVectorStore, tmp_path: Path
    ) -> None:
        supervisor = TaskSupervisor()
        uploads = _uploads(FakeGenerationClient(), repository, store, tmp_path, supervisor)

        events = await _events(
            uploads.start(filename="bad.pdf", data=b"not a pdf at all", session_id="s1")
        )

        assert events[0] == {"message": "Extracting text from PDF..."}
        assert set(events[-1]) == {"error"}
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_batch_failure_carries_batch_details(
        self, repository: DocumentRepository, store: JsonVectorStore, tmp_path: Path
    ) -> None:
        supervisor = TaskSupervisor()
        uploads = _uploads(FailingGenerationClient(), repository, store, tmp_path, supervisor)

        events = await _events(
            uploads.start(filename="report.pdf", data=make_pdf("Some text"), session_id="s1")
        )

        final = events[-1]
        assert (final["batch"], final["start"], final["size"]) == (0, 0, 1)
        assert (final["completed"], final["pending"], final["progress"]) == ([], [], 0.0)
        assert "embedding quota exceeded" in final["error"]
