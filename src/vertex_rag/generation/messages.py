"""Conversation messages and their Vertex ``contents`` representation.

Vertex AI expects ``[{"role": "user" | "model" | "system", "parts": [{"text": ...}]}]``
and rejects a message with zero parts, so normalisation always yields at
least one (possibly empty) text part.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant", "tool"]


class Message(BaseModel):
    """One turn of conversation history."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Any


def text_part(value: str | None) -> dict[str, str]:
    return {"text": value or ""}


def map_role(role: str | None) -> str:
    """Translate a chat role into the Vertex vocabulary.

    ``assistant`` becomes ``model``, ``system`` is kept, everything else
    (``user``, ``tool``, unknown values) collapses to ``user``.
    """
    if role == "assistant":
        return "model"
    if role == "system":
        return "system"
    return "user"


def field_value(obj: Any, name: str) -> Any:
    """Read *name* from a mapping or an attribute-style object."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def normalize_content(content: Any) -> list[dict[str, str]]:
    """Flatten message content into a non-empty list of text parts."""
    parts: list[dict[str, str]] = []
    if isinstance(content, str):
        parts.append(text_part(content))
    elif isinstance(content, Sequence) and not isinstance(content, (bytes, bytearray)):
        for item in content:
            if isinstance(item, str):
                parts.append(text_part(item))
            elif isinstance(field_value(item, "text"), str):
                parts.append(text_part(field_value(item, "text")))
            elif isinstance(field_value(item, "content"), str):
                parts.append(text_part(field_value(item, "content")))
    elif content is not None and field_value(content, "text"):
        parts.append(text_part(str(field_value(content, "text"))))

    if not parts:
        parts.append(text_part(""))
    return parts


def to_contents(messages: Sequence[Message | Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    """Build the Vertex ``contents`` list for *messages*."""
    return [
        {"role": map_role(field_value(m, "role")), "parts": normalize_content(field_value(m, "content"))}
        for m in messages or []
    ]


def text_to_contents(text: str | Sequence[str] | None) -> list[dict[str, Any]]:
    """Wrap raw text as a single user turn; sequences are joined by newlines."""
    if text is None:
        return [{"role": "user", "parts": [text_part("")]}]
    joined = text if isinstance(text, str) else "\n".join(text)
    return [{"role": "user", "parts": [text_part(joined)]}]


def last_user_text(messages: Sequence[Message | Mapping[str, Any]]) -> str:
    """Return the text of the most recent ``user`` message (empty when none)."""
    for message in reversed(list(messages)):
        if field_value(message, "role") == "user":
            return "".join(p["text"] for p in normalize_content(field_value(message, "content")))
    return ""
