"""
Retrieval — vector index and session-scoped context assembly.

Public surface
--------------
- :class:`VectorStoreBase` — abstract index (subclass for a managed backend).
- :class:`JsonVectorStore` — default local JSON-file index.
- :class:`ContextRetriever` — question → context → prompt messages.
- :class:`VectorItem`, :class:`VectorMatch` — data models.
"""

from vertex_rag.retrieval.base import VectorStoreBase
from vertex_rag.retrieval.json_store import JsonVectorStore
from vertex_rag.retrieval.models import VectorItem, VectorMatch
from vertex_rag.retrieval.retriever import ContextRetriever

__all__ = [
    "ContextRetriever",
    "JsonVectorStore",
    "VectorItem",
    "VectorMatch",
    "VectorStoreBase",
]
