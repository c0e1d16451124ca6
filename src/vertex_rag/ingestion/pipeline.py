"""Chunk → embedding → chunk rows → vector index, in concurrent batches.

Every batch runs three strictly ordered steps:

1. embed the batch's chunk texts (one vector per chunk);
2. insert the chunk rows and read back their assigned ids;
3. upsert ``{id, vector, metadata}`` into the vector index.

Batches themselves run concurrently, so progress events may arrive out
of input order; each event adds that batch's share of the total and the
cumulative value reaches 100.  The first failing batch cancels the
batches still in flight and surfaces as :class:`BatchIngestionError`,
which lists the batches already indexed and those still to retry.  A
batch whose indexing step fails deletes the chunk rows it inserted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from vertex_rag.exceptions import BatchIngestionError
from vertex_rag.generation.base import GenerationClient
from vertex_rag.retrieval.base import VectorStoreBase
from vertex_rag.retrieval.models import VectorItem

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10

ProgressSink = Callable[[dict[str, Any]], Awaitable[None]]


class ChunkWriter(Protocol):
    """Persistence collaborator that assigns chunk ids."""

    async def insert_chunks(
        self, texts: Sequence[str], session_id: str, document_id: str
    ) -> list[str]: ...

    async def delete_chunks(self, ids: Sequence[str]) -> None: ...


@dataclass
class IngestionResult:
    """Outcome of one :meth:`ChunkIngestionPipeline.ingest` call."""

    document_id: str
    chunk_ids: list[str] = field(default_factory=list)
    batches: int = 0
    progress: float = 0.0


def make_batches(chunks: Sequence[str], batch_size: int) -> list[list[str]]:
    """Partition *chunks* into fixed-size batches; the last may be shorter."""
    return [list(chunks[i : i + batch_size]) for i in range(0, len(chunks), batch_size)]


async def _cancel_all(tasks: list[asyncio.Task[None]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


class ChunkIngestionPipeline:
    """Embeds, persists and indexes document chunks.

    Parameters
    ----------
    client:
        Generation backend used for embeddings.
    writer:
        Persistence collaborator (see :class:`ChunkWriter`).
    store:
        Vector index receiving the embeddings.
    embed_model:
        Embedding model id (``None`` selects the backend default).
    batch_size:
        Chunks per batch.
    """

    def __init__(
        self,
        client: GenerationClient,
        writer: ChunkWriter,
        store: VectorStoreBase,
        *,
        embed_model: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._client = client
        self._writer = writer
        self._store = store
        self.embed_model = embed_model
        self.batch_size = batch_size

    async def ingest(
        self,
        chunks: Sequence[str],
        session_id: str,
        document_id: str,
        progress: ProgressSink,
    ) -> IngestionResult:
        """Ingest *chunks* for one document, pushing a progress event per batch."""
        result = IngestionResult(document_id=document_id)
        batches = make_batches(chunks, self.batch_size)
        result.batches = len(batches)
        if not batches:
            return result

        total = len(chunks)
        chunk_ids: list[list[str]] = [[] for _ in batches]
        completed: set[int] = set()

        async def run(index: int, batch: list[str]) -> None:
            start = index * self.batch_size
            try:
                chunk_ids[index] = await self._process_batch(batch, session_id, document_id)
                completed.add(index)
            except Exception as exc:
                raise BatchIngestionError(
                    f"Batch {index} (chunks {start}-{start + len(batch) - 1}) failed: {exc}",
                    batch=index,
                    start=start,
                    size=len(batch),
                ) from exc
            result.progress += (len(batch) / total) * 100
            await progress(
                {"message": f"Embedding... ({result.progress:.2f}%)", "progress": result.progress}
            )

        tasks = [asyncio.create_task(run(i, batch)) for i, batch in enumerate(batches)]
        try:
            await asyncio.gather(*tasks)
        except BatchIngestionError as exc:
            await _cancel_all(tasks)
            exc.completed = sorted(completed)
            exc.pending = [
                {"batch": i, "start": i * self.batch_size, "size": len(batch)}
                for i, batch in enumerate(batches)
                if i not in completed and i != exc.batch
            ]
            exc.progress = result.progress
            logger.warning(
                "Ingestion of document %s aborted at batch %d after %.2f%%; %d batch(es) to retry",
                document_id,
                exc.batch,
                result.progress,
                len(exc.pending) + 1,
            )
            raise
        except BaseException:
            await _cancel_all(tasks)
            raise

        result.chunk_ids = [cid for ids in chunk_ids for cid in ids]
        logger.info(
            "Ingested %d chunks for document %s in %d batches",
            len(result.chunk_ids),
            document_id,
            result.batches,
        )
        return result

    async def _process_batch(
        self, batch: list[str], session_id: str, document_id: str
    ) -> list[str]:
        embedding = await self._client.run(self.embed_model, text=batch)
        vectors: list[list[float]] = embedding.get("data") or []
        if len(vectors) != len(batch):
            raise ValueError(f"expected {len(batch)} embeddings, got {len(vectors)}")

        ids = await self._writer.insert_chunks(batch, session_id, document_id)
        try:
            if len(ids) != len(batch):
                raise ValueError(f"expected {len(batch)} chunk ids, got {len(ids)}")
            items = [
                VectorItem(
                    id=chunk_id,
                    values=vector,
                    metadata={
                        "sessionId": session_id,
                        "documentId": document_id,
                        "chunkId": chunk_id,
                        "text": text,
                    },
                )
                for chunk_id, vector, text in zip(ids, vectors, batch)
            ]
            await self._store.insert(items)
        except Exception:
            await self._writer.delete_chunks(ids)
            raise
        return ids
