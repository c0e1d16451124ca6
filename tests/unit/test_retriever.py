"""Unit tests for session-scoped context retrieval."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from conftest import FakeGenerationClient
from vertex_rag.generation.local import hashed_embedding
from vertex_rag.retrieval.json_store import JsonVectorStore
from vertex_rag.retrieval.models import VectorItem
from vertex_rag.retrieval.retriever import NO_CONTEXT_PROMPT, SYSTEM_PROMPT, ContextRetriever


@pytest_asyncio.fixture()
async def store(tmp_path: Path) -> JsonVectorStore:
    store = JsonVectorStore(tmp_path / "vectors.json")
    await store.insert(
        [
            VectorItem(
                id="c1",
                values=hashed_embedding("pipelines orchestrate workflows"),
                metadata={"sessionId": "s1", "text": "pipelines orchestrate workflows"},
            ),
            VectorItem(
                id="c2",
                values=hashed_embedding("pipelines orchestrate workflows"),
                metadata={"sessionId": "s2", "text": "someone else's document"},
            ),
        ]
    )
    return store


class _Recorder:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def __call__(self, event: dict[str, Any]) -> None:
        self.events.append(event)


class TestContextRetriever:
    @pytest.mark.asyncio
    async def test_retrieve_is_scoped_to_session(
        self, fake_client: FakeGenerationClient, store: JsonVectorStore
    ) -> None:
        retriever = ContextRetriever(fake_client, store)
        matches = await retriever.retrieve("pipelines orchestrate workflows", "s1")

        assert [m.id for m in matches] == ["c1"]
        assert fake_client.embed_calls == [["pipelines orchestrate workflows"]]

    @pytest.mark.asyncio
    async def test_blank_question_skips_embedding(
        self, fake_client: FakeGenerationClient, store: JsonVectorStore
    ) -> None:
        retriever = ContextRetriever(fake_client, store)
        assert await retriever.retrieve("   ", "s1") == []
        assert fake_client.embed_calls == []

    @pytest.mark.asyncio
    async def test_build_messages_prepends_context(
        self, fake_client: FakeGenerationClient, store: JsonVectorStore
    ) -> None:
        retriever = ContextRetriever(fake_client, store)
        push = _Recorder()
        history = [
            {"role": "system", "content": "client supplied"},
            {"role": "user", "content": "pipelines orchestrate workflows"},
        ]

        messages = await retriever.build_messages(history, "s1", push)

        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith(SYSTEM_PROMPT)
        assert "pipelines orchestrate workflows" in messages[0]["content"]
        assert messages[1:] == [{"role": "user", "content": "pipelines orchestrate workflows"}]

        (event,) = push.events
        assert event["message"] == "Found relevant documents, generating response..."
        assert [c["id"] for c in event["relevantContext"]] == ["c1"]
        assert event["relevantContext"][0]["text"] == "pipelines orchestrate workflows"

    @pytest.mark.asyncio
    async def test_no_matches_uses_fallback_prompt(
        self, fake_client: FakeGenerationClient, store: JsonVectorStore
    ) -> None:
        retriever = ContextRetriever(fake_client, store)
        push = _Recorder()

        messages = await retriever.build_messages(
            [{"role": "user", "content": "anything"}], "unknown-session", push
        )

        assert messages[0] == {"role": "system", "content": NO_CONTEXT_PROMPT}
        assert push.events[0]["relevantContext"] == []
