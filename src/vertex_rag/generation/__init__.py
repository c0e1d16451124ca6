"""
Generation — chat and embedding backends behind one call shape.

Public surface
--------------
- :class:`GenerationClient` — abstract backend with the ``run`` dispatch.
- :class:`Message` — one conversation turn.
- :func:`get_generation_client` — build the backend selected by settings.
- :class:`VertexAIClient` / :class:`LocalGenerationClient` — concrete backends
  (imported lazily so ``google-auth`` / ``langchain-openai`` load on demand).
"""

from vertex_rag.generation.base import GenerationClient
from vertex_rag.generation.llm import get_generation_client
from vertex_rag.generation.messages import Message

__all__ = [
    "GenerationClient",
    "LocalGenerationClient",
    "Message",
    "VertexAIClient",
    "get_generation_client",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import concrete backends."""
    if name == "VertexAIClient":
        from vertex_rag.generation.vertex import VertexAIClient

        return VertexAIClient
    if name == "LocalGenerationClient":
        from vertex_rag.generation.local import LocalGenerationClient

        return LocalGenerationClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
