from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from typing import Callable

from flask import Flask, current_app


class JobQueue(ABC):
    @abstractmethod
    def enqueue(self, func: Callable, *args) -> str:
        """Schedule ``func(*args)`` for background execution and return a job id."""


class SchedulerJobQueue(JobQueue):
    """Stores jobs in APScheduler's SQLAlchemy job store.

    The web process only writes jobs (its scheduler is started paused); the worker process
    started with ``flask worker run`` picks them up and runs them.
    """

    def __init__(self, app: Flask):
        self.app = app
        self._scheduler = None
        self._lock = threading.Lock()

    def _get_scheduler(self):
        with self._lock:
            if self._scheduler is None:
                from .scheduler import get_scheduler

                self._scheduler = get_scheduler(self.app)
                self._scheduler.start(paused=True)
            return self._scheduler

    def enqueue(self, func, *args):
        from .scheduler import DISPATCHER_REF

        job_id = f"{func.__name__}:{':'.join(str(a) for a in args)}:{uuid.uuid4().hex[:8]}"
        self._get_scheduler().add_job(
            DISPATCHER_REF,
            "date",
            args=[func.__module__, func.__name__, *args],
            id=job_id,
            misfire_grace_time=None,
        )
        current_app.logger.info("enqueued job %s", job_id)
        return job_id


class InlineJobQueue(JobQueue):
    """Runs the job immediately in the calling request. For development without a worker."""

    def enqueue(self, func, *args):
        job_id = f"{func.__name__}:{':'.join(str(a) for a in args)}:inline"
        current_app.logger.info("running job %s inline", job_id)
        func(*args)
        return job_id
