"""Background jobs executed by the worker process (see scheduler.py)."""
from __future__ import annotations

from flask import current_app

from . import db
from .models import AssignmentInvitation, User
from .provisioning.creator import RepositoryCreator
from .provisioning.status import RepoStatus, current_status, transition
from .services import get_services
from .utils.pg_lock import pg_try_advisory_lock


def create_repository_job(invitation_id: int, user_id: int) -> None:
    """Create the student's repository and move the status out of ``creating_repo``.

    Delivery is at-least-once. A redelivered job either finds the status already moved on
    and does nothing, or finds the AssignmentRepo stored by the first run, in which case
    the creator returns it without calling GitHub again.
    """
    invitation = db.session.get(AssignmentInvitation, invitation_id)
    user = db.session.get(User, user_id)
    if invitation is None or user is None:
        current_app.logger.warning(
            "create_repository_job: invitation %s or user %s no longer exists", invitation_id, user_id
        )
        return

    with pg_try_advisory_lock(f"create_repository:{invitation_id}:{user_id}") as locked:
        if not locked:
            current_app.logger.info(
                "create_repository_job: already running for invitation %s user %s, skipping", invitation_id, user_id
            )
            return

        status = current_status(invitation, user)
        if status is not RepoStatus.CREATING_REPO:
            current_app.logger.info(
                "create_repository_job: invitation %s user %s is %s, nothing to do", invitation_id, user_id, status.value
            )
            return

        try:
            result = RepositoryCreator(invitation.assignment, user, get_services().repositories).perform()
        except Exception:
            current_app.logger.exception(
                "create_repository_job crashed for invitation %s user %s", invitation_id, user_id
            )
            db.session.rollback()
            transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO)
            raise

        if result.is_success:
            transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.COMPLETED)
        elif result.is_failed:
            current_app.logger.warning(
                "create_repository_job: invitation %s user %s failed: %s", invitation_id, user_id, result.error
            )
            transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO)
        else:
            current_app.logger.info(
                "create_repository_job: invitation %s user %s still pending", invitation_id, user_id
            )
