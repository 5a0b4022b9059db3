"""
Task queue abstraction layer.

The HTTP layer and the job orchestrator hand crawls and jobs to workers
through ``TaskQueueService`` instead of spawning detached coroutines, so
worker shutdown and backpressure stay under the broker's control.

Implementations:
- ``CeleryTaskQueue``: production, sends tasks by name to a routed queue
- ``InMemoryTaskQueue``: tests, records submissions without a broker
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from app.core.exceptions import TaskSubmissionFailed

logger = logging.getLogger(__name__)

CRAWL_TASK = "app.tasks.crawling.run_crawl_job"
JOB_TASK = "app.tasks.jobs.run_job"

CRAWL_QUEUE = "crawling"
JOB_QUEUE = "jobs"


@dataclass
class TaskInfo:
    """A submitted task."""

    task_id: str
    name: str
    queue: str | None = None
    args: tuple[Any, ...] = field(default_factory=tuple)
    revoked: bool = False


class TaskQueueService(ABC):
    """
    Abstract interface for task submission.

    Example usage with FastAPI dependency injection:
        @router.post("/crawls")
        async def start_crawl(
            task_queue: TaskQueueService = Depends(get_task_queue),
        ):
            task_queue.submit_task(CRAWL_TASK, args=(str(crawl_job_id),), queue=CRAWL_QUEUE)
    """

    @abstractmethod
    def submit_task(
        self,
        task_name: str,
        args: tuple[Any, ...] | None = None,
        queue: str | None = None,
    ) -> TaskInfo:
        """
        Submit a task for execution by a worker.

        Args:
            task_name: Registered task name (e.g., "app.tasks.jobs.run_job")
            args: Positional arguments; must be JSON serializable
            queue: Queue to route the task to (default queue when None)
        """
        ...

    @abstractmethod
    def cancel_task(self, task_id: str) -> bool:
        """
        Revoke a task that has not started yet.

        Running tasks are stopped cooperatively through the job row's
        cancellation flag, never by terminating the worker process.
        """
        ...

    def submit_crawl(self, crawl_job_id: Any) -> TaskInfo:
        return self.submit_task(CRAWL_TASK, args=(str(crawl_job_id),), queue=CRAWL_QUEUE)

    def submit_job(self, job_id: Any) -> TaskInfo:
        return self.submit_task(JOB_TASK, args=(str(job_id),), queue=JOB_QUEUE)


class CeleryTaskQueue(TaskQueueService):
    """Celery implementation of TaskQueueService."""

    def __init__(self):
        self._app = None

    @property
    def app(self):
        """Lazy load Celery app to avoid import cycles."""
        if self._app is None:
            from app.celery_app import celery_app

            self._app = celery_app
        return self._app

    def submit_task(
        self,
        task_name: str,
        args: tuple[Any, ...] | None = None,
        queue: str | None = None,
    ) -> TaskInfo:
        options = {"queue": queue} if queue else {}
        try:
            result = self.app.send_task(task_name, args=args or (), **options)
        except Exception as e:
            logger.error(
                "Failed to submit task",
                extra={"task_name": task_name, "queue": queue, "error": str(e)},
            )
            raise TaskSubmissionFailed(f"Could not queue {task_name}", cause=e) from e
        logger.info(
            "Task submitted",
            extra={"task_id": result.id, "task_name": task_name, "queue": queue},
        )
        return TaskInfo(task_id=result.id, name=task_name, queue=queue, args=tuple(args or ()))

    def cancel_task(self, task_id: str) -> bool:
        try:
            self.app.control.revoke(task_id, terminate=False)
        except Exception as e:
            logger.warning(
                "Failed to revoke task",
                extra={"task_id": task_id, "error": str(e)},
            )
            return False
        logger.info("Task revoked", extra={"task_id": task_id})
        return True


class InMemoryTaskQueue(TaskQueueService):
    """Records submitted tasks in memory for tests."""

    def __init__(self):
        self.tasks: list[TaskInfo] = []

    def submit_task(
        self,
        task_name: str,
        args: tuple[Any, ...] | None = None,
        queue: str | None = None,
    ) -> TaskInfo:
        info = TaskInfo(
            task_id=f"test-task-{len(self.tasks) + 1}",
            name=task_name,
            queue=queue,
            args=tuple(args or ()),
        )
        self.tasks.append(info)
        return info

    def cancel_task(self, task_id: str) -> bool:
        for info in self.tasks:
            if info.task_id == task_id:
                info.revoked = True
                return True
        return False


# Singleton instance for dependency injection
_task_queue: TaskQueueService | None = None


def get_task_queue() -> TaskQueueService:
    """
    Get the task queue service instance.

    Designed for FastAPI's Depends():
        task_queue: TaskQueueService = Depends(get_task_queue)
    """
    global _task_queue
    if _task_queue is None:
        _task_queue = CeleryTaskQueue()
    return _task_queue


def set_task_queue(queue: TaskQueueService) -> None:
    """Replace the task queue, e.g. with InMemoryTaskQueue() in tests."""
    global _task_queue
    _task_queue = queue


def reset_task_queue() -> None:
    """Reset the task queue to default (Celery)."""
    global _task_queue
    _task_queue = None
