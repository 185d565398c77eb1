import itertools
from classroom_app.app import db
from classroom_app.app.models import InvitationStatus
from classroom_app.app.provisioning.status import (
    TRANSITIONS,
    RepoStatus,
    current_status,
    status_for,
    transition,
)
from conftest import create_user, set_status


def test_status_is_created_lazily_as_unaccepted(invitation, user):
    assert InvitationStatus.query.count() == 0
    assert current_status(invitation, user) is RepoStatus.UNACCEPTED
    # reading does not create the row
    assert InvitationStatus.query.count() == 0

    row = status_for(invitation, user)
    assert row.status == 'unaccepted'
    assert status_for(invitation, user).id == row.id
    assert InvitationStatus.query.count() == 1


def test_allowed_transitions_apply(invitation, user):
    assert transition(invitation, user, RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED)
    assert transition(invitation, user, 'accepted', 'creating_repo')
    assert transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO)
    assert transition(invitation, user, RepoStatus.ERRORED_CREATING_REPO, RepoStatus.CREATING_REPO)
    assert transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.COMPLETED)
    assert transition(invitation, user, RepoStatus.COMPLETED, RepoStatus.CREATING_REPO)
    assert current_status(invitation, user) is RepoStatus.CREATING_REPO


def test_undefined_transitions_are_no_ops(invitation, user):
    for from_state, to_state in itertools.product(RepoStatus, RepoStatus):
        if (from_state, to_state) in TRANSITIONS:
            continue
        set_status(invitation, user, from_state)
        assert transition(invitation, user, from_state, to_state) is False
        assert current_status(invitation, user) is from_state


def test_transition_from_stale_state_does_not_overwrite(invitation, user):
    # a slow worker still believes the repo is being created, reconciliation already moved on
    set_status(invitation, user, RepoStatus.COMPLETED)
    assert transition(invitation, user, RepoStatus.CREATING_REPO, RepoStatus.ERRORED_CREATING_REPO) is False
    assert current_status(invitation, user) is RepoStatus.COMPLETED


def test_second_claim_of_same_transition_loses(invitation, user):
    set_status(invitation, user, RepoStatus.ERRORED_CREATING_REPO)
    assert transition(invitation, user, RepoStatus.ERRORED_CREATING_REPO, RepoStatus.CREATING_REPO) is True
    assert transition(invitation, user, RepoStatus.ERRORED_CREATING_REPO, RepoStatus.CREATING_REPO) is False


def test_status_is_scoped_to_user(invitation, user):
    other = create_user(login='other-student', uid=202)
    transition(invitation, user, RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED)
    assert current_status(invitation, user) is RepoStatus.ACCEPTED
    assert current_status(invitation, other) is RepoStatus.UNACCEPTED
