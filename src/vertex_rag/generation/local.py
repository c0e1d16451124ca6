"""Local-mode generation backend.

With ``OPENAI_API_KEY`` set, chat and embeddings go through LangChain's
OpenAI integrations.  Without a key a deterministic echo / hashing
backend is used so ingestion and querying run fully offline.
"""

from __future__ import annotations

import logging
from hashlib import blake2b
from math import sqrt
from typing import Any

from vertex_rag.config import Settings
from vertex_rag.generation.base import GenerationClient, MessagesInput, TextInput
from vertex_rag.generation.messages import field_value, normalize_content

logger = logging.getLogger(__name__)

_LANGCHAIN_ROLES = {"system": "system", "assistant": "ai"}


def _flatten(content: Any) -> str:
    return "".join(part["text"] for part in normalize_content(content))


def _to_langchain(messages: MessagesInput) -> list[tuple[str, str]]:
    return [
        (_LANGCHAIN_ROLES.get(field_value(m, "role"), "human"), _flatten(field_value(m, "content")))
        for m in messages
    ]


def hashed_embedding(text: str, dimension: int = 8) -> list[float]:
    """Deterministic bag-of-words embedding, L2-normalised."""
    vector = [0.0] * dimension
    for token in text.lower().split():
        digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
        idx = int.from_bytes(digest[:4], "little") % dimension
        vector[idx] += -1.0 if digest[4] % 2 else 1.0
    norm = sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class LocalGenerationClient(GenerationClient):
    """OpenAI (via LangChain) or echo backend for development."""

    def __init__(self, settings: Settings, *, dimension: int = 8) -> None:
        self._settings = settings
        self._dimension = dimension
        self._chat: Any | None = None
        self._embeddings: Any | None = None
        if settings.openai_api_key:
            from langchain_openai import ChatOpenAI, OpenAIEmbeddings

            logger.info("Local mode: using OpenAI model %s", settings.openai_chat_model)
            self._chat = ChatOpenAI(
                model=settings.openai_chat_model,
                api_key=settings.openai_api_key,
                temperature=0,
            )
            self._embeddings = OpenAIEmbeddings(
                model=settings.openai_embed_model,
                api_key=settings.openai_api_key,
            )
        else:
            logger.info("Local mode: no OPENAI_API_KEY, using echo backend")

    async def generate(self, model_id: str | None, messages: MessagesInput) -> dict[str, Any]:
        messages = list(messages)
        if self._chat is not None:
            reply = await self._chat.ainvoke(_to_langchain(messages))
            return {"response": reply.content if isinstance(reply.content, str) else ""}
        last = _flatten(field_value(messages[-1], "content")) if messages else ""
        return {"response": f"ECHO: {last or 'hello'}"}

    async def embed(self, model_id: str | None, text: TextInput) -> dict[str, Any]:
        texts = [text] if isinstance(text, str) else list(text)
        if self._embeddings is not None:
            return {"data": await self._embeddings.aembed_documents(texts)}
        return {"data": [hashed_embedding(t, self._dimension) for t in texts]}
