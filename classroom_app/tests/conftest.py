import sys
import os
import pytest

# ensure repository root is on sys.path so `classroom_app` package can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Ensure tests have a DATABASE_URL so importing app.config doesn't raise
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
from classroom_app.app import create_app, db
from classroom_app.app.events import EventSink
from classroom_app.app.flags import FeatureFlags
from classroom_app.app.github.client import (
    RepositoryNameTaken,
    RepositoryNotFound,
    RepositoryService,
    RepositoryServiceTimeout,
)
from classroom_app.app.models import Assignment, AssignmentInvitation, Organization, User
from classroom_app.app.provisioning.status import status_for
from classroom_app.app.queue import JobQueue
from classroom_app.app.services import Services


# 親 Config は Final アノテーションと DATABASE_URL 必須チェックを持つため、
# テスト用は独立クラスとして定義する。
class TestConfig:
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test-secret"
    FEATURE_FLAGS = {"import_resiliency": False}


class FakeRepositoryService(RepositoryService):
    """In-memory GitHub. ``repos`` maps repository id to its attributes."""

    def __init__(self):
        self.repos = {}
        self.created = []
        self.deleted = []
        self.exists_calls = []
        self.create_error = None
        self.exists_error = None
        # called once, right after the next repository is generated
        self.after_create = None
        # the next create finishes on GitHub but reports a timeout
        self.timeout_after_create = False
        self._next_id = 1000

    def add_repository(self, repo_id, owner='classroom-org', name=None, commits=1, template=None):
        self.repos[repo_id] = {
            'owner': owner,
            'name': name or f'repo-{repo_id}',
            'commits': commits,
            'template': template,
        }

    def create_repository(self, template_repo_id, owner, name, private=True, collaborator=None):
        if self.create_error is not None:
            raise self.create_error
        if any(r['owner'] == owner and r['name'] == name for r in self.repos.values()):
            raise RepositoryNameTaken(f'{owner}/{name} already exists', 422)
        self._next_id += 1
        repo_id = self._next_id
        self.repos[repo_id] = {
            'owner': owner,
            'name': name,
            'commits': 1,
            'template': template_repo_id,
            'collaborator': collaborator,
            'private': private,
        }
        self.created.append(repo_id)
        hook, self.after_create = self.after_create, None
        if hook is not None:
            hook()
        if self.timeout_after_create:
            self.timeout_after_create = False
            raise RepositoryServiceTimeout(f'POST /generate {owner}/{name} timed out')
        return repo_id

    def repository_exists(self, repo_id, no_cache=False):
        self.exists_calls.append((repo_id, no_cache))
        if self.exists_error is not None:
            raise self.exists_error
        return repo_id in self.repos

    def repository_id(self, owner, name, template_repo_id=None):
        for repo_id, repo in self.repos.items():
            if repo['owner'] == owner and repo['name'] == name:
                if template_repo_id is not None and repo.get('template') != template_repo_id:
                    return None
                return repo_id
        return None

    def repository_empty(self, repo_id):
        if repo_id not in self.repos:
            raise RepositoryNotFound(f'{repo_id} not found', 404)
        return self.repos[repo_id]['commits'] <= 1

    def delete_repository(self, repo_id):
        self.deleted.append(repo_id)
        self.repos.pop(repo_id, None)
        return True


class RecordingJobQueue(JobQueue):
    def __init__(self):
        self.jobs = []
        # raised by enqueue while set, like an unreachable job store
        self.error = None

    def enqueue(self, func, *args):
        if self.error is not None:
            raise self.error
        self.jobs.append((func, args))
        return f'{func.__name__}:{len(self.jobs)}'

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for func, args in jobs:
            func(*args)


@pytest.fixture
def services():
    return Services(
        repositories=FakeRepositoryService(),
        queue=RecordingJobQueue(),
        events=EventSink(),
        flags=FeatureFlags(TestConfig.FEATURE_FLAGS),
    )


@pytest.fixture
def app(services):
    app = create_app(TestConfig, services=services)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def github(services):
    return services.repositories


@pytest.fixture
def queue(services):
    return services.queue


@pytest.fixture
def events(services):
    return services.events


@pytest.fixture
def resiliency(app, services):
    services.flags.enable('import_resiliency')


def create_user(login='octo-student', uid=101):
    u = User(uid=uid, login=login)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def user(app):
    return create_user()


@pytest.fixture
def organization(app):
    org = Organization(github_id=5001, login='classroom-org', title='Classroom Org')
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def assignment(organization):
    a = Assignment(
        organization_id=organization.id,
        title='Learn Clojure',
        slug='learn-clojure',
        starter_code_repo_id=1062897,
    )
    db.session.add(a)
    db.session.commit()
    return a


@pytest.fixture
def invitation(assignment):
    inv = AssignmentInvitation(assignment_id=assignment.id)
    db.session.add(inv)
    db.session.commit()
    return inv


def login(client, user):
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user.id)
        sess['_fresh'] = True


def set_status(invitation, user, state):
    """Put the pair into ``state`` directly, bypassing the transition rules."""
    row = status_for(invitation, user)
    row.status = getattr(state, 'value', state)
    db.session.add(row)
    db.session.commit()
