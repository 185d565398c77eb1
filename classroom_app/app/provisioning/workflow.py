"""Redemption, background provisioning and reconciliation for assignment invitations.

These functions hold the decisions behind the invitation endpoints. They take their
collaborators (GitHub, job queue, event sink) from a ``Services`` instance and the feature
flag values from ``ProvisioningOptions``, read once per request or job.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..events import (
    EXERCISE_INVITATION_ACCEPT,
    V2_EXERCISE_INVITATION_ACCEPT,
    V2_EXERCISE_REPO_RETRY,
)
from ..flags import IMPORT_RESILIENCY, FeatureFlags
from ..github.client import RepositoryService, RepositoryServiceError
from ..models import AssignmentInvitation, AssignmentRepo, User
from ..services import Services
from .creator import RepositoryCreator, Result
from .status import RepoStatus, current_status, transition

# where the student is sent next
SUCCESS = "success"
SETUP = "setupv2"
SHOW = "show"
NOT_FOUND = "not_found"


class FeatureDisabled(Exception):
    """An import-resiliency endpoint was hit while the flag is off."""


@dataclass(frozen=True)
class ProvisioningOptions:
    resiliency_enabled: bool = False

    @classmethod
    def from_flags(cls, flags: FeatureFlags) -> "ProvisioningOptions":
        return cls(resiliency_enabled=flags.enabled(IMPORT_RESILIENCY))


@dataclass
class Outcome:
    destination: str
    assignment_repo: Optional[AssignmentRepo] = None
    error: Optional[str] = None


def _assignment_repo(invitation: AssignmentInvitation, user: User) -> Optional[AssignmentRepo]:
    return AssignmentRepo.query.filter_by(assignment_id=invitation.assignment_id, user_id=user.id).first()


def _destroy(assignment_repo: AssignmentRepo) -> None:
    try:
        db.session.delete(assignment_repo)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("failed to delete assignment repo %s", assignment_repo.id)
        raise


def _enqueue(services: Services, invitation: AssignmentInvitation, user: User) -> bool:
    """Queue the worker job for a pair that was just moved to ``creating_repo``.

    If the queue refuses the job, the pair is moved on to ``errored_creating_repo`` so the
    student can retry instead of waiting on a job that does not exist.
    """
    from ..jobs import create_repository_job

    try:
        services.queue.enqueue(create_repository_job, invitation.id, user.id)
    except Exception:
        current_app.logger.exception(
            "could not enqueue repository job for invitation %s user %s", invitation.id, user.id
        )
        transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO)
        return False
    return True


def _mark_accepted(invitation: AssignmentInvitation, user: User) -> None:
    if current_status(invitation, user) is RepoStatus.UNACCEPTED:
        transition(invitation, user, RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED)


# one step along the table from each state towards completed
_TOWARDS_COMPLETED = {
    RepoStatus.UNACCEPTED: RepoStatus.ACCEPTED,
    RepoStatus.ACCEPTED: RepoStatus.CREATING_REPO,
    RepoStatus.ERRORED_CREATING_REPO: RepoStatus.CREATING_REPO,
    RepoStatus.CREATING_REPO: RepoStatus.COMPLETED,
}


def _mark_completed(invitation: AssignmentInvitation, user: User) -> None:
    """Record a repository created inline, one transition at a time."""
    status = current_status(invitation, user)
    for _ in range(len(_TOWARDS_COMPLETED)):
        if status is RepoStatus.COMPLETED:
            return
        transition(invitation, user, status, _TOWARDS_COMPLETED[status])
        status = current_status(invitation, user)


def accept_invitation(
    invitation: AssignmentInvitation, user: User, services: Services, options: ProvisioningOptions
) -> Outcome:
    if not options.resiliency_enabled:
        result = invitation.redeem_for(user, services.repositories)
        if not result.is_success:
            return Outcome(SHOW, error=result.error or "repository could not be created")
        services.events.increment(EXERCISE_INVITATION_ACCEPT)
        _mark_completed(invitation, user)
        return Outcome(SUCCESS, assignment_repo=result.assignment_repo)

    result = invitation.redeem_for(user, services.repositories, import_resiliency=True)
    if result.is_failed:
        return Outcome(SHOW, error=result.error)
    services.events.increment(V2_EXERCISE_INVITATION_ACCEPT)
    _mark_accepted(invitation, user)
    if current_status(invitation, user) is RepoStatus.COMPLETED:
        return Outcome(SUCCESS, assignment_repo=result.assignment_repo)
    return Outcome(SETUP, assignment_repo=result.assignment_repo)


def cleanup_errored_repo(invitation: AssignmentInvitation, user: User, repositories: RepositoryService) -> bool:
    """Remove what a failed attempt left behind. Returns True if the local record was deleted.

    An empty repository is a half-finished import and is deleted together with its record.
    A record whose repository is gone is deleted on its own. A repository with commits may
    hold the student's work: it is kept and the creator adopts it on retry.
    """
    assignment_repo = _assignment_repo(invitation, user)
    if assignment_repo is None:
        return False
    repo_id = assignment_repo.github_repo_id
    try:
        if not repositories.repository_exists(repo_id, no_cache=True):
            current_app.logger.info("repository %s is gone, dropping assignment repo %s", repo_id, assignment_repo.id)
            _destroy(assignment_repo)
            return True
        if not repositories.repository_empty(repo_id):
            current_app.logger.info("repository %s has commits, keeping it for retry", repo_id)
            return False
        repositories.delete_repository(repo_id)
    except RepositoryServiceError as exc:
        current_app.logger.warning("could not clean up repository %s before retry: %s", repo_id, exc)
        return False
    current_app.logger.info("deleted empty repository %s before retry", repo_id)
    _destroy(assignment_repo)
    return True


def start_provisioning(
    invitation: AssignmentInvitation, user: User, services: Services, options: ProvisioningOptions
) -> dict:
    if not options.resiliency_enabled:
        raise FeatureDisabled(IMPORT_RESILIENCY)

    status = current_status(invitation, user)
    if status is RepoStatus.ACCEPTED:
        if transition(invitation, user, RepoStatus.ACCEPTED, RepoStatus.CREATING_REPO):
            if _enqueue(services, invitation, user):
                return {"job_started": True, "status": "waiting"}
    elif status is RepoStatus.ERRORED_CREATING_REPO:
        # claim the retry before touching GitHub so two callers never clean up at once
        if transition(invitation, user, RepoStatus.ERRORED_CREATING_REPO, RepoStatus.CREATING_REPO):
            cleanup_errored_repo(invitation, user, services.repositories)
            services.events.increment(V2_EXERCISE_REPO_RETRY)
            if _enqueue(services, invitation, user):
                return {"job_started": True, "status": "waiting"}
    return {"job_started": False, "status": current_status(invitation, user).value}


def get_progress(invitation: AssignmentInvitation, user: User) -> dict:
    return {"status": current_status(invitation, user).value}


def reconcile_assignment_repo(
    invitation: AssignmentInvitation, user: User, services: Services, options: ProvisioningOptions
) -> Outcome:
    """Make sure the student's repository still exists on GitHub before showing it."""
    assignment_repo = _assignment_repo(invitation, user)
    if assignment_repo is None:
        return Outcome(NOT_FOUND)

    try:
        present = services.repositories.repository_exists(assignment_repo.github_repo_id, no_cache=True)
    except RepositoryServiceError as exc:
        current_app.logger.warning(
            "could not verify repository %s, showing stored record: %s", assignment_repo.github_repo_id, exc
        )
        return Outcome(SUCCESS, assignment_repo=assignment_repo)
    if present:
        return Outcome(SUCCESS, assignment_repo=assignment_repo)

    current_app.logger.info(
        "repository %s for assignment repo %s was deleted on GitHub", assignment_repo.github_repo_id, assignment_repo.id
    )
    _destroy(assignment_repo)

    if options.resiliency_enabled:
        status = current_status(invitation, user)
        if status is RepoStatus.COMPLETED:
            if transition(invitation, user, RepoStatus.COMPLETED, RepoStatus.CREATING_REPO):
                _enqueue(services, invitation, user)
        elif status is RepoStatus.UNACCEPTED:
            # the setup page starts the job from accepted
            transition(invitation, user, RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED)
        return Outcome(SETUP)

    result: Result = RepositoryCreator(invitation.assignment, user, services.repositories).perform()
    if not result.is_success:
        return Outcome(SHOW, error=result.error)
    return Outcome(SUCCESS, assignment_repo=result.assignment_repo)
