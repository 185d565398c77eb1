"""Per (invitation, user) provisioning status with compare-and-set transitions.

``InvitationStatus.status`` is the only mutable state shared by request handlers and
workers. It is never assigned directly: every change goes through ``transition``, which
updates the row only if it still holds the expected previous state.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import db
from ..models import AssignmentInvitation, InvitationStatus, User


class RepoStatus(str, Enum):
    UNACCEPTED = "unaccepted"
    ACCEPTED = "accepted"
    CREATING_REPO = "creating_repo"
    ERRORED_CREATING_REPO = "errored_creating_repo"
    COMPLETED = "completed"


TRANSITIONS = frozenset(
    {
        (RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED),
        (RepoStatus.ACCEPTED, RepoStatus.CREATING_REPO),
        (RepoStatus.CREATING_REPO, RepoStatus.COMPLETED),
        (RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO),
        (RepoStatus.ERRORED_CREATING_REPO, RepoStatus.CREATING_REPO),
        # the repository can disappear on GitHub at any time
        (RepoStatus.COMPLETED, RepoStatus.CREATING_REPO),
    }
)


def _lookup(invitation: AssignmentInvitation, user: User):
    return InvitationStatus.query.filter_by(invitation_id=invitation.id, user_id=user.id)


def current_status(invitation: AssignmentInvitation, user: User) -> RepoStatus:
    """Read the committed status. Does not create the row."""
    value = (
        db.session.query(InvitationStatus.status)
        .filter_by(invitation_id=invitation.id, user_id=user.id)
        .scalar()
    )
    return RepoStatus(value) if value else RepoStatus.UNACCEPTED


def status_for(invitation: AssignmentInvitation, user: User) -> InvitationStatus:
    """Return the status row for the pair, creating it as ``unaccepted`` on first access."""
    row = _lookup(invitation, user).first()
    if row is not None:
        return row
    row = InvitationStatus(invitation_id=invitation.id, user_id=user.id, status=RepoStatus.UNACCEPTED.value)
    try:
        db.session.add(row)
        db.session.commit()
    except IntegrityError:
        # another request created it first
        db.session.rollback()
        row = _lookup(invitation, user).one()
    return row


def transition(invitation: AssignmentInvitation, user: User, from_state, to_state) -> bool:
    """Move the pair from ``from_state`` to ``to_state``.

    Returns False without writing anything when the transition is not part of the state
    machine or when the stored state is no longer ``from_state``.
    """
    from_state, to_state = RepoStatus(from_state), RepoStatus(to_state)
    if (from_state, to_state) not in TRANSITIONS:
        current_app.logger.warning(
            "refusing undefined transition %s -> %s (invitation %s, user %s)",
            from_state.value, to_state.value, invitation.id, user.id,
        )
        return False

    status_for(invitation, user)
    stmt = (
        update(InvitationStatus)
        .where(
            InvitationStatus.invitation_id == invitation.id,
            InvitationStatus.user_id == user.id,
            InvitationStatus.status == from_state.value,
        )
        .values(status=to_state.value, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "status update %s -> %s failed (invitation %s, user %s)",
            from_state.value, to_state.value, invitation.id, user.id,
        )
        raise

    if result.rowcount != 1:
        current_app.logger.warning(
            "conflicting transition %s -> %s (invitation %s, user %s): status is %s",
            from_state.value, to_state.value, invitation.id, user.id,
            current_status(invitation, user).value,
        )
        return False
    current_app.logger.info(
        "invitation %s user %s: %s -> %s", invitation.id, user.id, from_state.value, to_state.value
    )
    return True
