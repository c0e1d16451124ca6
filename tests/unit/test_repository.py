"""Unit tests for document / chunk persistence on a temporary SQLite file."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from vertex_rag.db.models import DocumentRow
from vertex_rag.db.repository import DocumentRepository
from vertex_rag.exceptions import PersistenceError


@pytest_asyncio.fixture()
async def repository(tmp_path: Path):
    repo = DocumentRepository.from_sqlite(tmp_path / "nested" / "dev.sqlite")
    await repo.create_tables()
    yield repo
    await repo.dispose()


async def _document(repo: DocumentRepository, session_id: str = "s1") -> str:
    return await repo.insert_document(
        name="report.pdf",
        size=1234,
        text_content="full text",
        session_id=session_id,
        r2_url="local-storage/s1/report.pdf",
    )


class TestDocumentRepository:
    def test_creates_database_directory(self, tmp_path: Path) -> None:
        DocumentRepository.from_sqlite(tmp_path / "a" / "b" / "db.sqlite")
        assert (tmp_path / "a" / "b").is_dir()

    @pytest.mark.asyncio
    async def test_insert_document_assigns_id(self, repository: DocumentRepository) -> None:
        document_id = await _document(repository)

        async with repository._sessions() as session:
            row = await session.get(DocumentRow, document_id)
        assert row is not None
        assert row.name == "report.pdf"
        assert row.size == 1234
        assert row.session_id == "s1"
        assert row.created_at is not None

    @pytest.mark.asyncio
    async def test_chunk_ids_follow_input_order(self, repository: DocumentRepository) -> None:
        document_id = await _document(repository)
        texts = ["zero", "one", "two"]

        ids = await repository.insert_chunks(texts, "s1", document_id)

        assert len(ids) == len(set(ids)) == 3
        rows = await repository.get_chunks(ids)
        assert [r.text for r in rows] == texts
        assert {r.document_id for r in rows} == {document_id}

    @pytest.mark.asyncio
    async def test_get_chunks_skips_unknown_ids(self, repository: DocumentRepository) -> None:
        document_id = await _document(repository)
        (chunk_id,) = await repository.insert_chunks(["only"], "s1", document_id)

        rows = await repository.get_chunks(["missing", chunk_id])
        assert [r.id for r in rows] == [chunk_id]
        assert await repository.get_chunks([]) == []

    @pytest.mark.asyncio
    async def test_delete_chunks_removes_only_given_ids(
        self, repository: DocumentRepository
    ) -> None:
        document_id = await _document(repository)
        keep, drop_a, drop_b = await repository.insert_chunks(["a", "b", "c"], "s1", document_id)

        await repository.delete_chunks([drop_a, drop_b])
        await repository.delete_chunks([])

        rows = await repository.get_chunks([keep, drop_a, drop_b])
        assert [r.id for r in rows] == [keep]

    @pytest.mark.asyncio
    async def test_failed_write_raises_persistence_error(self, tmp_path: Path) -> None:
        repo = DocumentRepository.from_sqlite(tmp_path / "no-tables.sqlite")
        try:
            with pytest.raises(PersistenceError):
                await repo.insert_chunks(["text"], "s1", "doc")
        finally:
            await repo.dispose()
