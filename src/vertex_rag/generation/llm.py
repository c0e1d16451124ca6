"""Backend selection — single place to swap generation providers.

Supports two modes:

1. **Vertex AI** (default) — Gemini chat + ``text-embedding-*`` models,
   authenticated with Application Default Credentials.
2. **Local** — set ``LOCAL=true``.  Uses OpenAI through LangChain when
   ``OPENAI_API_KEY`` is present, a deterministic echo backend otherwise.
"""

from __future__ import annotations

import logging

from vertex_rag.config import Settings
from vertex_rag.generation.base import GenerationClient

logger = logging.getLogger(__name__)


def get_generation_client(settings: Settings) -> GenerationClient:
    """Return the generation client configured by *settings*."""
    if settings.local:
        from vertex_rag.generation.local import LocalGenerationClient

        logger.info("Using local generation backend")
        return LocalGenerationClient(settings)

    from vertex_rag.generation.vertex import VertexAIClient

    logger.info("Using Vertex AI backend in %s", settings.location)
    return VertexAIClient(settings)
