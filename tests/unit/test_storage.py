"""Unit tests for local blob storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from vertex_rag.ingestion.storage import BlobStore


@pytest.mark.asyncio
async def test_put_writes_under_prefix(tmp_path: Path) -> None:
    store = BlobStore(tmp_path / "blobs")
    location = await store.put("123-report.pdf", b"%PDF", prefix="session-1")

    assert Path(location) == tmp_path / "blobs" / "session-1" / "123-report.pdf"
    assert Path(location).read_bytes() == b"%PDF"


@pytest.mark.asyncio
async def test_put_strips_path_components(tmp_path: Path) -> None:
    store = BlobStore(tmp_path)
    location = await store.put("../../etc/passwd", b"x", prefix="../escape")

    assert Path(location) == tmp_path / "escape" / "passwd"
