"""Relational persistence for documents and chunk rows."""

from vertex_rag.db.models import ChunkRow, DocumentRow
from vertex_rag.db.repository import DocumentRepository

__all__ = ["ChunkRow", "DocumentRepository", "DocumentRow"]
