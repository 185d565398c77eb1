import pytest
from classroom_app.app import db
from classroom_app.app.github.client import RepositoryServiceError
from classroom_app.app.jobs import create_repository_job
from classroom_app.app.models import AssignmentRepo
from classroom_app.app.provisioning.status import RepoStatus, current_status
from classroom_app.app.queue import InlineJobQueue
from conftest import set_status


def test_job_creates_repository_and_completes(invitation, user, github):
    set_status(invitation, user, RepoStatus.CREATING_REPO)

    create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is RepoStatus.COMPLETED
    repo = AssignmentRepo.query.filter_by(user_id=user.id).one()
    assert repo.github_repo_id in github.repos


def test_job_failure_marks_errored(invitation, user, github):
    set_status(invitation, user, RepoStatus.CREATING_REPO)
    github.create_error = RepositoryServiceError('template not found', 404)

    create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is RepoStatus.ERRORED_CREATING_REPO
    assert AssignmentRepo.query.count() == 0


def test_redelivered_job_is_a_no_op(invitation, user, github):
    set_status(invitation, user, RepoStatus.CREATING_REPO)
    create_repository_job(invitation.id, user.id)

    create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is RepoStatus.COMPLETED
    assert len(github.created) == 1


@pytest.mark.parametrize('state', [RepoStatus.UNACCEPTED, RepoStatus.ACCEPTED, RepoStatus.ERRORED_CREATING_REPO])
def test_job_ignores_pairs_not_creating(invitation, user, github, state):
    set_status(invitation, user, state)

    create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is state
    assert github.created == []


def test_rerun_after_crash_adopts_stored_repository(invitation, user, github):
    # first delivery stored the repo, then the worker died before updating the status
    github.add_repository(4242, name='learn-clojure-octo-student')
    db.session.add(AssignmentRepo(assignment_id=invitation.assignment_id, user_id=user.id, github_repo_id=4242))
    db.session.commit()
    set_status(invitation, user, RepoStatus.CREATING_REPO)

    create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is RepoStatus.COMPLETED
    assert github.created == []
    assert AssignmentRepo.query.one().github_repo_id == 4242


def test_unexpected_error_marks_errored_and_propagates(invitation, user, github):
    set_status(invitation, user, RepoStatus.CREATING_REPO)
    github.create_error = RuntimeError('connection pool exhausted')

    with pytest.raises(RuntimeError):
        create_repository_job(invitation.id, user.id)

    assert current_status(invitation, user) is RepoStatus.ERRORED_CREATING_REPO


def test_job_for_deleted_invitation_returns(app, user, github):
    create_repository_job(999, user.id)
    assert github.created == []


def test_inline_queue_runs_job_immediately(invitation, user, github):
    set_status(invitation, user, RepoStatus.CREATING_REPO)

    job_id = InlineJobQueue().enqueue(create_repository_job, invitation.id, user.id)

    assert job_id.startswith('create_repository_job:')
    assert current_status(invitation, user) is RepoStatus.COMPLETED
