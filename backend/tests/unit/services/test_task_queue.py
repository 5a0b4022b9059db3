"""
Unit tests for the task queue abstraction.
"""

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import TaskSubmissionFailed
from app.services.task_queue import (
    CRAWL_QUEUE,
    CRAWL_TASK,
    JOB_QUEUE,
    JOB_TASK,
    CeleryTaskQueue,
    InMemoryTaskQueue,
    get_task_queue,
    reset_task_queue,
    set_task_queue,
)


@pytest.fixture(autouse=True)
def restore_task_queue():
    yield
    reset_task_queue()


class TestInMemoryTaskQueue:
    def test_submit_crawl_routes_to_crawling_queue(self):
        queue = InMemoryTaskQueue()
        crawl_job_id = uuid.uuid4()

        info = queue.submit_crawl(crawl_job_id)

        assert info.task_id == "test-task-1"
        assert info.name == CRAWL_TASK
        assert info.queue == CRAWL_QUEUE
        assert info.args == (str(crawl_job_id),)

    def test_submit_job_routes_to_jobs_queue(self):
        queue = InMemoryTaskQueue()
        queue.submit_crawl(uuid.uuid4())

        info = queue.submit_job(uuid.uuid4())

        assert info.task_id == "test-task-2"
        assert info.name == JOB_TASK
        assert info.queue == JOB_QUEUE
        assert len(queue.tasks) == 2

    def test_cancel_task_marks_revoked(self):
        queue = InMemoryTaskQueue()
        info = queue.submit_job(uuid.uuid4())

        assert queue.cancel_task(info.task_id) is True
        assert info.revoked is True
        assert queue.cancel_task("unknown") is False


class TestCeleryTaskQueue:
    def test_submit_task_sends_by_name(self):
        queue = CeleryTaskQueue()
        queue._app = MagicMock()
        queue._app.send_task.return_value = SimpleNamespace(id="celery-123")

        info = queue.submit_job("job-1")

        queue._app.send_task.assert_called_once_with(JOB_TASK, args=("job-1",), queue=JOB_QUEUE)
        assert info.task_id == "celery-123"

    def test_submit_task_wraps_broker_errors(self):
        queue = CeleryTaskQueue()
        queue._app = MagicMock()
        queue._app.send_task.side_effect = ConnectionError("broker down")

        with pytest.raises(TaskSubmissionFailed, match="Could not queue") as exc_info:
            queue.submit_crawl(uuid.uuid4())

        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_cancel_task_revokes_without_terminating(self):
        queue = CeleryTaskQueue()
        queue._app = MagicMock()

        assert queue.cancel_task("celery-123") is True
        queue._app.control.revoke.assert_called_once_with("celery-123", terminate=False)

    def test_cancel_task_reports_broker_errors(self):
        queue = CeleryTaskQueue()
        queue._app = MagicMock()
        queue._app.control.revoke.side_effect = ConnectionError("broker down")

        assert queue.cancel_task("celery-123") is False


class TestTaskQueueSingleton:
    def test_default_is_celery(self):
        assert isinstance(get_task_queue(), CeleryTaskQueue)

    def test_set_task_queue_overrides(self):
        queue = InMemoryTaskQueue()
        set_task_queue(queue)

        assert get_task_queue() is queue
