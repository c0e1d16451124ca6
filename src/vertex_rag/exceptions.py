"""Error types shared across generation, ingestion and serving."""

from __future__ import annotations


class VertexRagError(Exception):
    """Base class for all errors raised by this package."""


class VertexAPIError(VertexRagError):
    """The generation backend answered with a non-success status.

    Permission and quota failures arrive here and are never retried.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelResolutionError(VertexRagError):
    """No candidate model-name form was accepted by the backend."""


class BackendShapeError(VertexRagError):
    """A generation result advertised a streaming capability it could not honour."""


class PersistenceError(VertexRagError):
    """A relational write (document or chunk rows) failed."""


class UploadValidationError(VertexRagError):
    """An upload was rejected before any pipeline work started."""

    status_code = 400


class BatchIngestionError(VertexRagError):
    """One ingestion batch failed; carries enough detail to retry the rest.

    Attributes
    ----------
    batch:
        Zero-based index of the batch that failed.
    start:
        Offset of that batch's first chunk in the chunk list.
    size:
        Number of chunks in that batch.
    completed:
        Indices of batches that were fully indexed before the failure.
    pending:
        ``{"batch", "start", "size"}`` for every other batch that was
        cancelled or failed and still needs ingesting.
    progress:
        Cumulative progress (0-100) reached by the completed batches.
    """

    def __init__(
        self,
        message: str,
        *,
        batch: int,
        start: int,
        size: int,
        completed: list[int] | None = None,
        pending: list[dict[str, int]] | None = None,
        progress: float = 0.0,
    ) -> None:
        super().__init__(message)
        self.batch = batch
        self.start = start
        self.size = size
        self.completed = completed or []
        self.pending = pending or []
        self.progress = progress

    def to_event(self) -> dict[str, object]:
        return {
            "error": str(self),
            "batch": self.batch,
            "start": self.start,
            "size": self.size,
            "completed": self.completed,
            "pending": self.pending,
            "progress": self.progress,
        }
