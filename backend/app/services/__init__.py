"""Application services."""

from app.services.embedding import EmbeddingService, OpenAIEmbeddingService
from app.services.task_queue import (
    CeleryTaskQueue,
    InMemoryTaskQueue,
    TaskQueueService,
    get_task_queue,
)

__all__ = [
    "EmbeddingService",
    "OpenAIEmbeddingService",
    # Task queue
    "TaskQueueService",
    "CeleryTaskQueue",
    "InMemoryTaskQueue",
    "get_task_queue",
]
