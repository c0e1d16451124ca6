"""Domain models for vector-index entries and query matches."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import BaseModel, Field, TypeAdapter

# NaN and infinity have no JSON form and would poison the persisted index.
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


class VectorItem(BaseModel):
    """An entry handed to :meth:`VectorStoreBase.insert`.

    Attributes
    ----------
    id:
        Unique key; inserting an existing id replaces the entry.
    values:
        The embedding vector; every component must be finite.
    metadata:
        Arbitrary flat metadata (``sessionId``, ``documentId``, ``chunkId``,
        ``text`` for ingested chunks).
    """

    id: str
    values: list[FiniteFloat]
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoredVector(BaseModel):
    """Persisted layout of one entry: ``{id, vector, metadata}``."""

    id: str
    vector: list[FiniteFloat]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    """A query hit, ranked by descending ``score``."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


StoreSnapshot = TypeAdapter(dict[str, StoredVector])


def dot(a: list[float], b: list[float]) -> float:
    """Dot product over the shorter of the two vectors."""
    return sum(x * y for x, y in zip(a, b))


def metadata_matches(metadata: Mapping[str, Any], metadata_filter: Mapping[str, Any] | None) -> bool:
    """Exact-equality AND filter; an entry missing a filtered key never matches."""
    if not metadata_filter:
        return True
    for key, value in metadata_filter.items():
        if key not in metadata or metadata[key] != value:
            return False
    return True
