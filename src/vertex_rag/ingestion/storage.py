"""Local blob storage for uploaded files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class BlobStore:
    """Stores blobs under ``<root>/<prefix>/<name>``.

    Parameters
    ----------
    root:
        Storage directory, created on construction.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, name: str, data: bytes, *, prefix: str | None = None) -> str:
        """Write *data* and return the stored path."""
        safe_name = Path(name).name
        directory = self.root / Path(prefix).name if prefix else self.root
        path = directory / safe_name
        await asyncio.to_thread(self._write, path, data)
        logger.debug("Stored blob %s (%d bytes)", path, len(data))
        return str(path)
