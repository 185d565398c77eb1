from __future__ import annotations

from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import db
from ..github.client import RepositoryNameTaken, RepositoryService, RepositoryServiceError
from ..models import Assignment, AssignmentRepo, User
from ..utils.pg_lock import pg_advisory_lock

# GitHub repository names are limited to 100 characters
MAX_REPO_NAME_LENGTH = 100
MAX_NAME_ATTEMPTS = 5


class DuplicateAssignmentRepo(Exception):
    """More than one AssignmentRepo exists for one (assignment, user). Needs an operator."""


class Result:
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"

    def __init__(self, status: str, assignment_repo: Optional[AssignmentRepo] = None, error: Optional[str] = None):
        self.status = status
        self.assignment_repo = assignment_repo
        self.error = error

    @classmethod
    def success(cls, assignment_repo: AssignmentRepo) -> "Result":
        return cls(cls.SUCCESS, assignment_repo=assignment_repo)

    @classmethod
    def pending(cls) -> "Result":
        return cls(cls.PENDING)

    @classmethod
    def failed(cls, error: str) -> "Result":
        return cls(cls.FAILED, error=error)

    @property
    def is_success(self) -> bool:
        return self.status == self.SUCCESS

    @property
    def is_pending(self) -> bool:
        return self.status == self.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == self.FAILED

    def __repr__(self):
        return f"<Result {self.status} repo={self.assignment_repo!r} error={self.error!r}>"


class RepositoryCreator:
    """Create the student's repository for an assignment, or return the one that exists.

    The existence check and the create run under an advisory lock for the pair (Postgres).
    The unique constraint on assignment_repos backs that up: a creator that loses the
    insert deletes the repository it just generated and returns the winner's row.
    """

    def __init__(self, assignment: Assignment, user: User, repositories: RepositoryService):
        self.assignment = assignment
        self.user = user
        self.repositories = repositories
        # repository taken over from an earlier attempt; never deleted by this creator
        self._adopted: Optional[int] = None

    @property
    def lock_name(self) -> str:
        return f"assignment_repo:{self.assignment.id}:{self.user.id}"

    def perform(self) -> Result:
        if self.assignment.group_assignment:
            return Result.failed("group assignments are not provisioned per student")

        with pg_advisory_lock(self.lock_name):
            existing = self.existing_repo()
            if existing is not None:
                return Result.success(existing)
            try:
                repo_id = self._create_github_repository()
            except RepositoryServiceError as exc:
                current_app.logger.warning(
                    "repository creation failed for assignment %s user %s: %s",
                    self.assignment.id, self.user.id, exc,
                )
                return Result.failed(str(exc))
            return self._persist(repo_id)

    def existing_repo(self) -> Optional[AssignmentRepo]:
        rows = (
            AssignmentRepo.query.filter_by(assignment_id=self.assignment.id, user_id=self.user.id)
            .limit(2)
            .all()
        )
        if len(rows) > 1:
            raise DuplicateAssignmentRepo(
                f"assignment {self.assignment.id} user {self.user.id} has {len(rows)} repositories"
            )
        return rows[0] if rows else None

    def repo_name(self, suffix: int = 0) -> str:
        tail = f"-{suffix}" if suffix else ""
        base = f"{self.assignment.slug}-{self.user.login}"
        return base[: MAX_REPO_NAME_LENGTH - len(tail)] + tail

    def _create_github_repository(self) -> int:
        organization = self.assignment.organization
        for attempt in range(MAX_NAME_ATTEMPTS):
            name = self.repo_name(attempt)
            try:
                return self._generate(organization.login, name)
            except RepositoryNameTaken:
                if attempt == 0:
                    repo_id = self._reclaim(organization.login, name)
                    if repo_id is not None:
                        return repo_id
                current_app.logger.info("repository name %s/%s is taken, trying next suffix", organization.login, name)
        raise RepositoryServiceError(f"no free repository name for {self.repo_name()}")

    def _generate(self, owner: str, name: str) -> int:
        return self.repositories.create_repository(
            self.assignment.starter_code_repo_id,
            owner=owner,
            name=name,
            private=self.assignment.private,
            collaborator=self.user.login,
        )

    def _reclaim(self, owner: str, name: str) -> Optional[int]:
        """Deal with a repository an earlier, unrecorded attempt left at ``owner/name``.

        A create that timed out on our side may still have finished on GitHub. Such a
        repository was generated from this assignment's template but has no AssignmentRepo.
        An empty one is deleted and the name generated again; one with commits is adopted.
        Returns None when the name belongs to some other repository.
        """
        leftover = self.repositories.repository_id(
            owner, name, template_repo_id=self.assignment.starter_code_repo_id
        )
        if leftover is None:
            return None
        if not self.repositories.repository_empty(leftover):
            current_app.logger.warning("adopting unrecorded repository %s/%s (%s)", owner, name, leftover)
            self._adopted = leftover
            return leftover
        current_app.logger.warning("deleting empty unrecorded repository %s/%s (%s)", owner, name, leftover)
        self.repositories.delete_repository(leftover)
        try:
            return self._generate(owner, name)
        except RepositoryNameTaken:
            return None

    def _persist(self, repo_id: int) -> Result:
        assignment_repo = AssignmentRepo(
            assignment_id=self.assignment.id, user_id=self.user.id, github_repo_id=repo_id
        )
        try:
            db.session.add(assignment_repo)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning(
                "another creator stored a repo for assignment %s user %s first (ours was %s)",
                self.assignment.id, self.user.id, repo_id,
            )
            winner = self.existing_repo()
            if winner is None or winner.github_repo_id != repo_id:
                self._discard(repo_id)
            if winner is None:
                return Result.failed("assignment repo insert conflicted but no row was found")
            return Result.success(winner)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("failed to store repository %s", repo_id)
            self._discard(repo_id)
            return Result.failed("could not record the new repository")
        current_app.logger.info(
            "assignment %s user %s: created repository %s", self.assignment.id, self.user.id, repo_id
        )
        return Result.success(assignment_repo)

    def _discard(self, repo_id: int) -> None:
        if repo_id == self._adopted:
            current_app.logger.warning("keeping adopted repository %s", repo_id)
            return
        try:
            self.repositories.delete_repository(repo_id)
        except RepositoryServiceError:
            current_app.logger.exception("could not delete orphaned repository %s", repo_id)
