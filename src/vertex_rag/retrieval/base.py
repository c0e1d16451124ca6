"""Abstract base class for vector-index backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing :meth:`~VectorStoreBase.insert` and
:meth:`~VectorStoreBase.query`.  Ingestion and retrieval are
backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from vertex_rag.retrieval.models import VectorItem, VectorMatch

DEFAULT_TOP_K = 5


class VectorStoreBase(ABC):
    """Backend-agnostic vector-index interface.

    Parameters
    ----------
    namespace:
        Logical name of the index.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    @abstractmethod
    async def insert(self, items: Sequence[VectorItem]) -> dict[str, Any]:
        """Upsert *items* by id and persist them before returning.

        Returns ``{"success": True, "count": n}``.
        """
        ...

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = DEFAULT_TOP_K,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the top-*top_k* entries ranked by similarity to *vector*.

        Parameters
        ----------
        vector:
            Query embedding.
        top_k:
            Maximum number of matches.
        filter:
            Optional metadata mapping; every key must be present and equal.
        """
        ...
