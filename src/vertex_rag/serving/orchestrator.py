"""Query and upload flows, each running behind an SSE stream.

Both orchestrators open an :class:`EventStream`, hand the actual work to
the :class:`TaskSupervisor` under the stream id and return the stream
straight away.  The background coroutine reports failures as a final
``{"error": ...}`` event and always closes the stream.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from vertex_rag.db.repository import DocumentRepository
from vertex_rag.exceptions import BatchIngestionError
from vertex_rag.generation.base import GenerationClient
from vertex_rag.generation.messages import Message
from vertex_rag.ingestion.chunker import split_text
from vertex_rag.ingestion.loader import extract_pdf_text
from vertex_rag.ingestion.pipeline import ChunkIngestionPipeline
from vertex_rag.ingestion.storage import BlobStore
from vertex_rag.retrieval.retriever import ContextRetriever
from vertex_rag.serving.adapter import relay
from vertex_rag.serving.events import EventStream
from vertex_rag.serving.tasks import TaskSupervisor

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """Answers a chat query for one session as a stream of events."""

    def __init__(
        self,
        client: GenerationClient,
        retriever: ContextRetriever,
        supervisor: TaskSupervisor,
        *,
        chat_model: str | None = None,
    ) -> None:
        self._client = client
        self._retriever = retriever
        self._supervisor = supervisor
        self.chat_model = chat_model

    def start(
        self, messages: Sequence[Message | Mapping[str, Any]], session_id: str
    ) -> EventStream:
        stream = EventStream()
        self._supervisor.spawn(stream.stream_id, self.run(stream, messages, session_id))
        return stream

    async def run(
        self,
        stream: EventStream,
        messages: Sequence[Message | Mapping[str, Any]],
        session_id: str,
    ) -> None:
        try:
            prompt = await self._retriever.build_messages(messages, session_id, stream.push_json)
            result = await self._client.run(self.chat_model, messages=prompt, stream=True)
            await relay(result, stream.push)
        except Exception as exc:
            logger.exception("Query failed for session %s", session_id)
            await stream.push_json({"error": str(exc)})
        finally:
            await stream.close()


class IngestionOrchestrator:
    """Turns an uploaded PDF into a stored document, chunk rows and vectors.

    Parameters
    ----------
    pipeline:
        Batch embedding / indexing pipeline.
    repository:
        Document and chunk persistence.
    blobs:
        Storage for the raw upload.
    supervisor:
        Owner of the background task.
    chunk_size, chunk_overlap:
        Text splitter settings.
    """

    def __init__(
        self,
        pipeline: ChunkIngestionPipeline,
        repository: DocumentRepository,
        blobs: BlobStore,
        supervisor: TaskSupervisor,
        *,
        chunk_size: int = 500,
        chunk_overlap: int = 100,
    ) -> None:
        self._pipeline = pipeline
        self._repository = repository
        self._blobs = blobs
        self._supervisor = supervisor
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def start(self, *, filename: str, data: bytes, session_id: str) -> EventStream:
        stream = EventStream()
        self._supervisor.spawn(
            stream.stream_id, self.run(stream, filename=filename, data=data, session_id=session_id)
        )
        return stream

    async def run(
        self, stream: EventStream, *, filename: str, data: bytes, session_id: str
    ) -> None:
        try:
            await stream.push_json({"message": "Extracting text from PDF..."})
            text = await asyncio.to_thread(extract_pdf_text, data)

            await stream.push_json({"message": "Storing document..."})
            url = await self._blobs.put(
                f"{int(time.time() * 1000)}-{filename}", data, prefix=session_id
            )
            document_id = await self._repository.insert_document(
                name=filename,
                size=len(data),
                text_content=text,
                session_id=session_id,
                r2_url=url,
            )

            await stream.push_json({"message": "Splitting text into chunks..."})
            chunks = split_text(text, self.chunk_size, self.chunk_overlap)
            result = await self._pipeline.ingest(chunks, session_id, document_id, stream.push_json)

            await stream.push_json(
                {
                    "message": "Inserted document",
                    "name": filename,
                    "size": len(data),
                    "documentId": document_id,
                    "chunks": len(result.chunk_ids),
                }
            )
        except BatchIngestionError as exc:
            logger.exception("Ingestion of %s failed in batch %d", filename, exc.batch)
            await stream.push_json(exc.to_event())
        except Exception as exc:
            logger.exception("Ingestion of %s failed", filename)
            await stream.push_json({"error": str(exc)})
        finally:
            await stream.close()
