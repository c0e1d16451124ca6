"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from vertex_rag.config import Settings
from vertex_rag.generation.base import GenerationClient, MessagesInput, TextInput
from vertex_rag.generation.local import hashed_embedding


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class FakeGenerationClient(GenerationClient):
    """Deterministic in-memory backend that records every call."""

    def __init__(self, reply: str = "fake answer", dimension: int = 8) -> None:
        self.reply = reply
        self.dimension = dimension
        self.generate_calls: list[list[Any]] = []
        self.embed_calls: list[list[str]] = []
        self.fail_on: set[str] = set()

    async def generate(self, model_id: str | None, messages: MessagesInput) -> dict[str, Any]:
        self.generate_calls.append(list(messages))
        return {"response": self.reply}

    async def embed(self, model_id: str | None, text: TextInput) -> dict[str, Any]:
        texts = [text] if isinstance(text, str) else list(text)
        self.embed_calls.append(texts)
        for value in texts:
            if value in self.fail_on:
                raise RuntimeError(f"embedding failed for {value!r}")
        return {"data": [hashed_embedding(value, self.dimension) for value in texts]}


@pytest.fixture()
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Local-mode settings rooted in a temporary directory."""
    return Settings(
        _env_file=None,
        local=True,
        openai_api_key="",
        project_id="test-project",
        storage_dir=tmp_path / "storage",
        sqlite_path=tmp_path / "db" / "test.sqlite",
    )


def make_pdf(text: str) -> bytes:
    """Build a one-page PDF showing *text* in Helvetica."""
    content = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R"
        b" /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_at,
    )
    return bytes(out)
