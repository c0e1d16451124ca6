"""Abstract base class for generation / embedding backends.

Adding a backend only requires subclassing :class:`GenerationClient` and
implementing :meth:`~GenerationClient.generate` and
:meth:`~GenerationClient.embed`.  The dispatch in :meth:`~GenerationClient.run`
keeps the call shape identical for every caller.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

from vertex_rag.generation.messages import Message

MessagesInput = Sequence[Message | Mapping[str, Any]]
TextInput = str | Sequence[str]


async def stream_once(result: Mapping[str, Any]) -> AsyncIterator[str]:
    """Expose a finished response as a one-frame async stream."""
    yield json.dumps({"response": result.get("response", "")})


class GenerationClient(ABC):
    """Backend-agnostic chat + embedding client."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def generate(self, model_id: str | None, messages: MessagesInput) -> dict[str, Any]:
        """Return ``{"response": str}`` for a chat request."""
        ...

    @abstractmethod
    async def embed(self, model_id: str | None, text: TextInput) -> dict[str, Any]:
        """Return ``{"data": [vector, ...]}``, one vector per input string, in order."""
        ...

    # -- shared entry point ---------------------------------------------------

    async def run(
        self,
        model_id: str | None,
        *,
        messages: MessagesInput | None = None,
        text: TextInput | None = None,
        stream: bool = False,
    ) -> Any:
        """Dispatch to chat or embedding depending on the supplied input.

        Parameters
        ----------
        model_id:
            Caller-supplied model identifier; ``None`` selects the default.
        messages:
            Conversation history — selects a chat request.
        text:
            A string or sequence of strings — selects an embedding request.
        stream:
            With *messages*, return an async iterator instead of a dict.
        """
        if messages is not None:
            result = await self.generate(model_id, messages)
            if stream:
                return stream_once(result)
            return result
        if text is not None:
            return await self.embed(model_id, text)
        return {"response": ""}

    async def aclose(self) -> None:
        """Release transport resources.  No-op by default."""
