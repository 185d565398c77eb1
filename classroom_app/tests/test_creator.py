import pytest
from classroom_app.app import db
from classroom_app.app.github.client import RepositoryServiceTimeout
from classroom_app.app.models import Assignment, AssignmentRepo
from classroom_app.app.provisioning.creator import DuplicateAssignmentRepo, RepositoryCreator, Result


def test_creates_repository_from_template(assignment, user, github):
    result = RepositoryCreator(assignment, user, github).perform()

    assert result.is_success
    repo = result.assignment_repo
    assert repo.assignment_id == assignment.id
    assert repo.user_id == user.id
    created = github.repos[repo.github_repo_id]
    assert created['owner'] == 'classroom-org'
    assert created['name'] == 'learn-clojure-octo-student'
    assert created['template'] == 1062897
    assert created['collaborator'] == 'octo-student'


def test_second_call_returns_first_record_without_calling_github(assignment, user, github):
    first = RepositoryCreator(assignment, user, github).perform()
    second = RepositoryCreator(assignment, user, github).perform()

    assert second.is_success
    assert second.assignment_repo.id == first.assignment_repo.id
    assert second.assignment_repo.github_repo_id == first.assignment_repo.github_repo_id
    assert len(github.created) == 1
    assert AssignmentRepo.query.count() == 1


@pytest.mark.parametrize('interleaving', ['before_check', 'after_create', 'after_insert'])
def test_racing_creators_leave_one_live_repo(assignment, user, github, monkeypatch, interleaving):
    inner = {}

    def second_creator_runs_meanwhile():
        if 'result' not in inner:
            inner['result'] = RepositoryCreator(assignment, user, github).perform()

    outer_creator = RepositoryCreator(assignment, user, github)
    if interleaving == 'before_check':
        check = outer_creator.existing_repo

        def existing_repo():
            second_creator_runs_meanwhile()
            return check()

        monkeypatch.setattr(outer_creator, 'existing_repo', existing_repo)
    elif interleaving == 'after_create':
        # both creators have passed the existence check by now
        github.after_create = second_creator_runs_meanwhile
    else:
        persist = outer_creator._persist

        def _persist(repo_id):
            result = persist(repo_id)
            second_creator_runs_meanwhile()
            return result

        monkeypatch.setattr(outer_creator, '_persist', _persist)

    outer = outer_creator.perform()

    assert inner['result'].is_success
    assert outer.is_success
    assert outer.assignment_repo.id == inner['result'].assignment_repo.id
    row = AssignmentRepo.query.filter_by(assignment_id=assignment.id, user_id=user.id).one()
    # every other repository generated along the way was deleted again
    assert set(github.repos) == {row.github_repo_id}


def test_create_that_timed_out_but_finished_is_replaced(assignment, user, github):
    github.timeout_after_create = True

    first = RepositoryCreator(assignment, user, github).perform()
    assert first.is_failed
    assert AssignmentRepo.query.count() == 0
    leftover = github.created[0]

    second = RepositoryCreator(assignment, user, github).perform()

    assert second.is_success
    assert github.deleted == [leftover]
    assert [r['name'] for r in github.repos.values()] == ['learn-clojure-octo-student']
    assert second.assignment_repo.github_repo_id != leftover


def test_unrecorded_repository_with_commits_is_adopted(assignment, user, github):
    github.add_repository(77, name='learn-clojure-octo-student', commits=3, template=1062897)

    result = RepositoryCreator(assignment, user, github).perform()

    assert result.is_success
    assert result.assignment_repo.github_repo_id == 77
    assert github.created == []
    assert github.deleted == []


def test_adopted_repository_survives_losing_the_insert(assignment, user, github, monkeypatch):
    github.add_repository(77, name='learn-clojure-octo-student', commits=3, template=1062897)
    creator = RepositoryCreator(assignment, user, github)
    winner = AssignmentRepo(assignment_id=assignment.id, user_id=user.id, github_repo_id=99)
    check = creator.existing_repo
    calls = []

    def existing_repo():
        calls.append(1)
        if len(calls) == 1:
            # another request stores a row right after this creator looked
            result = check()
            db.session.add(winner)
            db.session.commit()
            return result
        return check()

    monkeypatch.setattr(creator, 'existing_repo', existing_repo)

    result = creator.perform()

    assert result.assignment_repo.github_repo_id == 99
    assert 77 in github.repos
    assert github.deleted == []


def test_name_collision_uses_suffix(assignment, user, github):
    github.add_repository(1, name='learn-clojure-octo-student')

    result = RepositoryCreator(assignment, user, github).perform()

    assert result.is_success
    assert github.repos[result.assignment_repo.github_repo_id]['name'] == 'learn-clojure-octo-student-1'


def test_timeout_is_a_failure(assignment, user, github):
    github.create_error = RepositoryServiceTimeout('POST /generate timed out')

    result = RepositoryCreator(assignment, user, github).perform()

    assert result.is_failed
    assert 'timed out' in result.error
    assert AssignmentRepo.query.count() == 0


def test_group_assignments_are_refused(organization, user, github):
    group = Assignment(
        organization_id=organization.id, title='Team project', slug='team', starter_code_repo_id=7, group_assignment=True
    )
    db.session.add(group)
    db.session.commit()

    result = RepositoryCreator(group, user, github).perform()

    assert result.is_failed
    assert github.created == []


def test_duplicate_rows_are_surfaced(assignment, user, github, monkeypatch):
    rows = [AssignmentRepo(id=1, github_repo_id=1), AssignmentRepo(id=2, github_repo_id=2)]

    class FakeQuery:
        def filter_by(self, **kw):
            return self

        def limit(self, n):
            return self

        def all(self):
            return rows

    monkeypatch.setattr(AssignmentRepo, 'query', FakeQuery())
    with pytest.raises(DuplicateAssignmentRepo):
        RepositoryCreator(assignment, user, github).perform()


def test_repo_name_is_capped_at_github_limit(assignment, user, github):
    assignment.slug = 'x' * 120
    creator = RepositoryCreator(assignment, user, github)
    assert len(creator.repo_name()) == 100
    assert creator.repo_name(3).endswith('-3')
    assert len(creator.repo_name(3)) == 100


def test_result_kinds():
    assert Result.pending().is_pending
    assert not Result.pending().is_success
    failed = Result.failed('boom')
    assert failed.is_failed and failed.error == 'boom'
