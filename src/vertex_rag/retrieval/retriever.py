"""Session-scoped context retrieval for the query path.

Embeds the latest user question, pulls the closest chunks of the
session's documents from the vector index and prepends them to the
conversation as a system message.

Usage::

    retriever = ContextRetriever(client, store)
    messages = await retriever.build_messages(history, session_id, push)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from vertex_rag.generation.base import GenerationClient
from vertex_rag.generation.messages import Message, field_value, last_user_text
from vertex_rag.retrieval.base import DEFAULT_TOP_K, VectorStoreBase
from vertex_rag.retrieval.models import VectorMatch

logger = logging.getLogger(__name__)

ProgressSink = Callable[[dict[str, Any]], Awaitable[None]]

SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions about the user's uploaded documents. "
    "Answer using only the context below. If the context does not contain the answer, say so."
)
NO_CONTEXT_PROMPT = (
    "You are a helpful assistant. No relevant documents were found for this question; "
    "tell the user and answer only if you are certain."
)


def build_system_prompt(matches: Sequence[VectorMatch]) -> str:
    if not matches:
        return NO_CONTEXT_PROMPT
    context = "\n\n".join(
        f"[{i}] {m.metadata.get('text', '')}" for i, m in enumerate(matches, start=1)
    )
    return f"{SYSTEM_PROMPT}\n\n<context>\n{context}\n</context>"


class ContextRetriever:
    """Retrieve session context and assemble the generation prompt.

    Parameters
    ----------
    client:
        Backend used to embed the question.
    store:
        Vector index holding the ingested chunks.
    embed_model:
        Embedding model id (``None`` selects the backend default).
    top_k:
        Number of chunks added to the prompt.
    """

    def __init__(
        self,
        client: GenerationClient,
        store: VectorStoreBase,
        *,
        embed_model: str | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self._client = client
        self._store = store
        self.embed_model = embed_model
        self.top_k = top_k

    async def retrieve(self, question: str, session_id: str) -> list[VectorMatch]:
        """Return the chunks of *session_id* closest to *question*."""
        if not question.strip():
            return []
        result = await self._client.run(self.embed_model, text=[question])
        vectors = result.get("data") or []
        if not vectors or not vectors[0]:
            logger.warning("Empty embedding for question, skipping retrieval")
            return []
        return await self._store.query(
            vectors[0], top_k=self.top_k, filter={"sessionId": session_id}
        )

    async def build_messages(
        self,
        messages: Sequence[Message | Mapping[str, Any]],
        session_id: str,
        push: ProgressSink,
    ) -> list[dict[str, Any]]:
        """Return ``[system(context), *history]`` ready for generation."""
        question = last_user_text(messages)
        matches = await self.retrieve(question, session_id)
        logger.info("Retrieved %d chunks for session %s", len(matches), session_id)
        await push(
            {
                "message": "Found relevant documents, generating response...",
                "relevantContext": [
                    {"id": m.id, "score": m.score, "text": m.metadata.get("text", "")}
                    for m in matches
                ],
            }
        )
        history = [
            {"role": field_value(m, "role"), "content": field_value(m, "content")}
            for m in messages
            if field_value(m, "role") != "system"
        ]
        return [{"role": "system", "content": build_system_prompt(matches)}, *history]
