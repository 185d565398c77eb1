from __future__ import annotations
import secrets
from datetime import datetime
from typing import TYPE_CHECKING
from flask_login import UserMixin
from . import db
from .utils.crypto import encrypt_value, decrypt_value

if TYPE_CHECKING:
    from .github.client import RepositoryService
    from .provisioning.creator import Result


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    # GitHub user id and login
    uid = db.Column(db.BigInteger, unique=True, nullable=False, index=True)
    login = db.Column(db.String(255), nullable=False, index=True)
    # OAuth token, stored encrypted
    token = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    assignment_repos = db.relationship("AssignmentRepo", back_populates="user")

    def set_token(self, value: str) -> None:
        self.token = encrypt_value(value)

    @property
    def github_token(self) -> "str | None":
        if not self.token:
            return None
        return decrypt_value(self.token)


class Roster(db.Model):
    __tablename__ = "rosters"
    id = db.Column(db.Integer, primary_key=True)
    identifier_name = db.Column(db.String(255), nullable=False, default="email")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    entries = db.relationship("RosterEntry", back_populates="roster", cascade="all, delete-orphan")


class RosterEntry(db.Model):
    __tablename__ = "roster_entries"
    id = db.Column(db.Integer, primary_key=True)
    roster_id = db.Column(db.Integer, db.ForeignKey("rosters.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    identifier = db.Column(db.String(255), nullable=False)

    roster = db.relationship("Roster", back_populates="entries")
    user = db.relationship("User")


class Organization(db.Model):
    __tablename__ = "organizations"
    id = db.Column(db.Integer, primary_key=True)
    github_id = db.Column(db.BigInteger, unique=True, nullable=False, index=True)
    # GitHub org login; owner of every generated student repository
    login = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    roster_id = db.Column(db.Integer, db.ForeignKey("rosters.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roster = db.relationship("Roster")
    assignments = db.relationship("Assignment", back_populates="organization")

    def on_roster(self, user: User) -> bool:
        if self.roster is None:
            return True
        return any(entry.user_id == user.id for entry in self.roster.entries)


class Assignment(db.Model):
    __tablename__ = "assignments"
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False)
    # template repository the student repos are generated from
    starter_code_repo_id = db.Column(db.BigInteger, nullable=False)
    group_assignment = db.Column(db.Boolean, default=False, nullable=False)
    private = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    organization = db.relationship("Organization", back_populates="assignments")
    invitation = db.relationship("AssignmentInvitation", back_populates="assignment", uselist=False)


def _generate_key() -> str:
    return secrets.token_hex(16)


class AssignmentInvitation(db.Model):
    __tablename__ = "assignment_invitations"
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True, default=_generate_key)
    assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    assignment = db.relationship("Assignment", back_populates="invitation")

    @property
    def organization(self) -> Organization:
        return self.assignment.organization

    def redeem_for(self, user: User, repositories: "RepositoryService", import_resiliency: bool = False) -> "Result":
        """Redeem this invitation for ``user``.

        Returns success with the existing repo when there is one. With import resiliency
        the creation is left to the background worker and the result is pending; otherwise
        the repository is created inline.
        """
        from .provisioning.creator import RepositoryCreator, Result

        assignment_repo = AssignmentRepo.query.filter_by(assignment_id=self.assignment_id, user_id=user.id).first()
        if assignment_repo:
            return Result.success(assignment_repo)
        if import_resiliency:
            return Result.pending()
        return RepositoryCreator(self.assignment, user, repositories).perform()


class InvitationStatus(db.Model):
    __tablename__ = "invitation_statuses"
    __table_args__ = (db.UniqueConstraint("invitation_id", "user_id", name="uq_invitation_statuses_invitation_user"),)
    id = db.Column(db.Integer, primary_key=True)
    invitation_id = db.Column(db.Integer, db.ForeignKey("assignment_invitations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # unaccepted, accepted, creating_repo, errored_creating_repo, completed
    status = db.Column(db.String(32), nullable=False, default="unaccepted")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    invitation = db.relationship("AssignmentInvitation")
    user = db.relationship("User")


class AssignmentRepo(db.Model):
    __tablename__ = "assignment_repos"
    # one repo per student per assignment; concurrent creators lose on insert
    __table_args__ = (db.UniqueConstraint("assignment_id", "user_id", name="uq_assignment_repos_assignment_user"),)
    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    github_repo_id = db.Column(db.BigInteger, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    assignment = db.relationship("Assignment")
    user = db.relationship("User", back_populates="assignment_repos")


class FeatureFlag(db.Model):
    __tablename__ = "feature_flags"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    enabled = db.Column(db.Boolean, default=False, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
