"""Local JSON-file vector index with brute-force dot-product ranking.

A development stand-in for a managed vector database: every insert
rewrites the whole file, so write cost grows with the store size.
Saves are serialised with an :class:`asyncio.Lock`; a multi-process
deployment needs a transactional backend instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vertex_rag.retrieval.base import DEFAULT_TOP_K, VectorStoreBase
from vertex_rag.retrieval.models import (
    StoredVector,
    StoreSnapshot,
    VectorItem,
    VectorMatch,
    dot,
    metadata_matches,
)

logger = logging.getLogger(__name__)


class JsonVectorStore(VectorStoreBase):
    """In-memory vector map persisted to a single JSON file.

    Parameters
    ----------
    path:
        Backing file, created on first save.
    namespace:
        Logical index name.
    """

    def __init__(self, path: str | Path, *, namespace: str = "documents") -> None:
        super().__init__(namespace)
        self.path = Path(path)
        self._store: dict[str, StoredVector] = self._load()
        self._save_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._store

    # -- persistence ----------------------------------------------------------

    def _load(self) -> dict[str, StoredVector]:
        """Read the backing file, keeping every entry that still validates."""
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_bytes())
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load vector store %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Failed to load vector store %s: expected an object", self.path)
            return {}

        store: dict[str, StoredVector] = {}
        for key, entry in raw.items():
            try:
                store[key] = StoredVector.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping invalid vector %r in %s: %s", key, self.path, exc)
        logger.info("Loaded %d vectors from %s", len(store), self.path)
        return store

    def _write(self, payload: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(payload)
        os.replace(tmp_path, self.path)

    async def _save(self) -> None:
        async with self._save_lock:
            try:
                payload = StoreSnapshot.dump_json(self._store)
                await asyncio.to_thread(self._write, payload)
            except (OSError, ValueError) as exc:
                # The in-memory map stays authoritative for this process.
                logger.warning("Failed to save vector store %s: %s", self.path, exc)

    # -- VectorStoreBase overrides --------------------------------------------

    async def insert(self, items: Sequence[VectorItem]) -> dict[str, Any]:
        entries = [
            StoredVector(id=item.id, vector=item.values, metadata=item.metadata) for item in items
        ]
        for entry in entries:
            # Raises before anything is stored if the entry cannot be written out.
            entry.model_dump_json()
        for entry in entries:
            self._store[entry.id] = entry
        await self._save()
        return {"success": True, "count": len(items)}

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int = DEFAULT_TOP_K,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        candidates = [
            entry for entry in self._store.values() if metadata_matches(entry.metadata, filter)
        ]
        ranked = sorted(
            (
                VectorMatch(id=entry.id, score=dot(entry.vector, vector), metadata=entry.metadata)
                for entry in candidates
            ),
            key=lambda match: match.score,
            reverse=True,
        )
        return ranked[: top_k or DEFAULT_TOP_K]
