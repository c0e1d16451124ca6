"""Async data access for documents and chunk rows."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from vertex_rag.db.models import Base, ChunkRow, DocumentRow, new_id
from vertex_rag.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Persists documents and chunks; assigns their ids at insert time.

    Parameters
    ----------
    engine:
        Async SQLAlchemy engine.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_sqlite(cls, path: str | Path) -> DocumentRepository:
        """Open (creating the parent directory if needed) a SQLite database file."""
        db_path = Path(path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(create_async_engine(f"sqlite+aiosqlite:///{db_path}"))

    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def insert_document(
        self,
        *,
        name: str,
        size: int,
        text_content: str,
        session_id: str,
        r2_url: str,
    ) -> str:
        """Insert a document row and return its id."""
        row = DocumentRow(
            id=new_id(),
            name=name,
            size=size,
            text_content=text_content,
            session_id=session_id,
            r2_url=r2_url,
        )
        try:
            async with self._sessions.begin() as session:
                session.add(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to insert document {name!r}: {exc}") from exc
        return row.id

    async def insert_chunks(
        self, texts: Sequence[str], session_id: str, document_id: str
    ) -> list[str]:
        """Insert chunk rows in one transaction; ids come back in input order."""
        rows = [
            ChunkRow(id=new_id(), text=text, session_id=session_id, document_id=document_id)
            for text in texts
        ]
        try:
            async with self._sessions.begin() as session:
                session.add_all(rows)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to insert {len(rows)} chunks for document {document_id}: {exc}"
            ) from exc
        logger.debug("Inserted %d chunks for document %s", len(rows), document_id)
        return [row.id for row in rows]

    async def delete_chunks(self, ids: Sequence[str]) -> None:
        """Remove chunk rows whose vectors never reached the index."""
        if not ids:
            return
        try:
            async with self._sessions.begin() as session:
                await session.execute(delete(ChunkRow).where(ChunkRow.id.in_(list(ids))))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {len(ids)} chunks: {exc}") from exc
        logger.debug("Deleted %d orphaned chunks", len(ids))

    async def get_chunks(self, ids: Sequence[str]) -> list[ChunkRow]:
        """Return chunk rows for *ids* (unknown ids are skipped)."""
        if not ids:
            return []
        async with self._sessions() as session:
            result = await session.execute(select(ChunkRow).where(ChunkRow.id.in_(list(ids))))
            by_id = {row.id: row for row in result.scalars()}
        return [by_id[i] for i in ids if i in by_id]

