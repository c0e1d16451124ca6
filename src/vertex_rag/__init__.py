"""Vertex RAG — session-scoped document Q&A over Vertex AI with SSE streaming."""
