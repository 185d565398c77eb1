from __future__ import annotations
from dataclasses import dataclass
from flask import Flask, current_app
from .events import EventSink
from .flags import FeatureFlags
from .github.client import GitHubRepositoryService, RepositoryService
from .queue import InlineJobQueue, JobQueue, SchedulerJobQueue


@dataclass
class Services:
    """Collaborators of the provisioning workflow, one set per application."""

    repositories: RepositoryService
    queue: JobQueue
    events: EventSink
    flags: FeatureFlags


def build_services(app: Flask) -> Services:
    if app.config.get("JOB_QUEUE_BACKEND", "scheduler") == "inline":
        queue: JobQueue = InlineJobQueue()
    else:
        queue = SchedulerJobQueue(app)
    return Services(
        repositories=GitHubRepositoryService.from_config(app.config),
        queue=queue,
        events=EventSink(),
        flags=FeatureFlags(app.config.get("FEATURE_FLAGS")),
    )


def init_services(app: Flask, services: "Services | None" = None) -> Services:
    services = services or build_services(app)
    app.extensions["classroom"] = services
    return services


def get_services() -> Services:
    return current_app.extensions["classroom"]
