"""
Ingestion — upload validation, text extraction, chunking, and the
batched embed → persist → index pipeline.
"""

from vertex_rag.ingestion.chunker import split_text
from vertex_rag.ingestion.pipeline import ChunkIngestionPipeline, IngestionResult

__all__ = ["ChunkIngestionPipeline", "IngestionResult", "split_text"]
