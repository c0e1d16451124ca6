"""Vertex AI REST client for Gemini chat and text embeddings.

Requests go through ``google.auth``'s :class:`AuthorizedSession` (a
``requests`` session that attaches and refreshes OAuth tokens).  The
blocking calls run in a worker thread so each request is a suspension
point for the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import google.auth
from google.auth.transport.requests import AuthorizedSession

from vertex_rag.config import Settings
from vertex_rag.exceptions import ModelResolutionError, VertexAPIError
from vertex_rag.generation.base import GenerationClient, MessagesInput, TextInput
from vertex_rag.generation.messages import text_part, text_to_contents, to_contents

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

MODEL_PARAM_SIGNATURE = (
    "model parameter must be either a Model Garden model ID or a full resource name"
)

_MODEL_PREFIXES = ("models/", "publishers/google/models/")
# Workers-AI style ids (``@cf/meta/...``) can never be served by Vertex.
_FOREIGN_NAMESPACES = ("@cf/",)


def clean_model(model_id: str | None, fallback: str) -> str:
    """Normalise a caller-supplied model id, falling back to *fallback*.

    Leading ``models/`` or ``publishers/google/models/`` prefixes are
    stripped.  Empty ids and ids from a foreign namespace resolve to the
    fallback.
    """
    candidate = (model_id or "").strip()
    for prefix in _MODEL_PREFIXES:
        if candidate.startswith(prefix):
            candidate = candidate[len(prefix) :]
            break
    if not candidate or candidate.startswith(_FOREIGN_NAMESPACES):
        return fallback
    return candidate


def is_model_param_error(err: BaseException) -> bool:
    return MODEL_PARAM_SIGNATURE in str(err)


def extract_text(payload: Any) -> str:
    """Concatenate the text parts of the first candidate (empty on any mismatch)."""
    if not isinstance(payload, dict):
        return ""
    for root in (payload, payload.get("response") or {}):
        try:
            parts = root["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            continue
        if isinstance(parts, list):
            return "".join((p or {}).get("text") or "" for p in parts if isinstance(p, dict))
    return ""


def extract_embedding(payload: Any) -> list[float]:
    """Pick the first non-empty vector among the known response layouts."""
    if not isinstance(payload, dict):
        return []
    lookups = (
        lambda p: p["embedding"]["values"],
        lambda p: p["embeddings"][0]["values"],
        lambda p: p["data"][0]["embedding"]["values"],
    )
    for lookup in lookups:
        try:
            values = lookup(payload)
        except (KeyError, IndexError, TypeError):
            continue
        if values:
            return [float(v) for v in values]
    return []


class VertexAIClient(GenerationClient):
    """Chat + embedding client for the Vertex AI ``publishers/google`` models.

    Parameters
    ----------
    settings:
        Application settings (project, location, default models, timeout).
    session:
        Pre-built authorised session.  When *None*, one is created from
        Application Default Credentials on first use.
    """

    def __init__(self, settings: Settings, *, session: AuthorizedSession | None = None) -> None:
        self._settings = settings
        self._session = session
        self._project: str | None = settings.project_id
        self._resolve_lock = asyncio.Lock()

    # -- project / credentials ------------------------------------------------

    @property
    def location(self) -> str:
        return self._settings.location

    def _discover(self) -> tuple[AuthorizedSession, str | None]:
        credentials, project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        return AuthorizedSession(credentials), project

    async def _ensure_ready(self) -> tuple[AuthorizedSession, str]:
        """Resolve session and project once; later calls reuse the cached values."""
        if self._session is not None and self._project:
            return self._session, self._project

        async with self._resolve_lock:
            if self._session is None or not self._project:
                session, project = await asyncio.to_thread(self._discover)
                if self._session is None:
                    self._session = session
                if not self._project:
                    if not project:
                        raise VertexAPIError(
                            "Unable to determine Google Cloud project. "
                            "Set GCP_PROJECT_ID or GOOGLE_CLOUD_PROJECT."
                        )
                    logger.info("Discovered Google Cloud project %s", project)
                    self._project = project
        return self._session, self._project

    # -- transport ------------------------------------------------------------

    def _candidates(self, project: str, model: str) -> list[str]:
        return [
            f"publishers/google/models/{model}",
            f"projects/{project}/locations/{self.location}/publishers/google/models/{model}",
            model,
        ]

    def _url(self, project: str, resource: str, method: str) -> str:
        host = f"https://{self.location}-aiplatform.googleapis.com/v1"
        if resource.startswith(("projects/", "publishers/")):
            return f"{host}/{resource}:{method}"
        return f"{host}/projects/{project}/locations/{self.location}/models/{resource}:{method}"

    def _post(self, session: AuthorizedSession, url: str, body: dict[str, Any]) -> Any:
        response = session.post(url, json=body, timeout=self._settings.request_timeout)
        if response.status_code >= 400:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = response.text or f"HTTP {response.status_code}"
            raise VertexAPIError(message, status_code=response.status_code)
        return response.json()

    async def _call_model(self, model: str, method: str, body: dict[str, Any]) -> Any:
        """POST *body* to *model*, walking the accepted model-name forms.

        Only the "unrecognised model" error advances to the next form;
        every other backend error propagates untouched.
        """
        session, project = await self._ensure_ready()
        last_error: VertexAPIError | None = None
        for resource in self._candidates(project, model):
            url = self._url(project, resource, method)
            try:
                return await asyncio.to_thread(self._post, session, url, body)
            except VertexAPIError as exc:
                if not is_model_param_error(exc):
                    raise
                logger.debug("Model form %r rejected, trying next", resource)
                last_error = exc
        raise ModelResolutionError(
            f"No model name form accepted for {model!r}: {last_error}"
        ) from last_error

    # -- GenerationClient -----------------------------------------------------

    async def generate(self, model_id: str | None, messages: MessagesInput) -> dict[str, Any]:
        model = clean_model(model_id, self._settings.chat_model)
        contents = to_contents(messages) if messages else text_to_contents(None)
        payload = await self._call_model(model, "generateContent", {"contents": contents})
        return {"response": extract_text(payload)}

    async def embed(self, model_id: str | None, text: TextInput) -> dict[str, Any]:
        model = clean_model(model_id, self._settings.embed_model)
        texts: Sequence[str] = [text] if isinstance(text, str) else list(text)
        vectors: list[list[float]] = []
        for value in texts:
            request = {"content": {"parts": [text_part(value)]}}
            payload = await self._call_model(model, "embedContent", request)
            vectors.append(extract_embedding(payload))
        return {"data": vectors}

    async def aclose(self) -> None:
        if self._session is not None:
            await asyncio.to_thread(self._session.close)
