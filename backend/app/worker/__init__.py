"""Worker-side wiring for Celery tasks."""

from app.worker.context import WorkerContext

__all__ = ["WorkerContext"]
