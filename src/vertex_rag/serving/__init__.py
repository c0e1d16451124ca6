"""
Serving — FastAPI application streaming query answers and upload progress.

Public surface
--------------
- :func:`create_app` — application factory (see :mod:`vertex_rag.serving.app`).
- :class:`EventStream` — per-connection SSE sink.
- :class:`TaskSupervisor` — owner of background work keyed by stream id.
"""

from vertex_rag.serving.events import EventStream
from vertex_rag.serving.tasks import TaskSupervisor

__all__ = ["EventStream", "TaskSupervisor", "create_app"]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the application factory (pulls in every backend)."""
    if name == "create_app":
        from vertex_rag.serving.app import create_app

        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
