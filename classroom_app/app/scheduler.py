"""Job worker built on APScheduler.

Web processes add date-triggered jobs to the SQLAlchemyJobStore (see queue.py). This
process runs separately from the WSGI workers (e.g. as a separate container or systemd
service), polls the shared job store and runs each job inside a Flask application context.
Jobs must tolerate being delivered more than once.
"""
from __future__ import annotations

import importlib
import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask

logger = logging.getLogger("scheduler")

DISPATCHER_REF = f"{__name__}:run_job_in_app_context"
JOBS_TABLE = "apscheduler_jobs"

_worker_app: Optional[Flask] = None


def setup_logging(path: str = "/tmp/classroom-worker.log"):
    handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=3)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def get_scheduler(app: Flask) -> BackgroundScheduler:
    jobstores = {
        "default": SQLAlchemyJobStore(url=app.config.get("SQLALCHEMY_DATABASE_URI"), tablename=JOBS_TABLE)
    }
    return BackgroundScheduler(jobstores=jobstores, job_defaults={"coalesce": False, "max_instances": 4})


def run_job_in_app_context(module_name: str, func_name: str, *a, **kw):
    """Import ``module_name.func_name`` and run it inside an application context.

    Stored by APScheduler as a textual reference, so it must stay importable at module level.
    """
    global _worker_app
    if _worker_app is None:
        from . import create_app

        _worker_app = create_app()
    try:
        mod = importlib.import_module(module_name)
        fn = getattr(mod, func_name)
        with _worker_app.app_context():
            return fn(*a, **kw)
    except Exception:
        logger.exception("Failed to run job %s.%s%r", module_name, func_name, a)
        raise


def run(app: Optional[Flask] = None):
    global _worker_app
    from . import create_app

    app = app or create_app()
    _worker_app = app
    setup_logging()

    scheduler = get_scheduler(app)
    scheduler.start()
    poll = int(app.config.get("JOB_QUEUE_POLL_SECONDS", 5))
    logger.info("Worker started, polling job store every %ss", poll)
    try:
        while True:
            time.sleep(poll)
            # pick up jobs other processes wrote to the shared job store
            scheduler.wakeup()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down worker")
        scheduler.shutdown()
