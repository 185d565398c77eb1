from __future__ import annotations
from typing import cast
from flask import Blueprint, abort, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..forms import AcceptInvitationForm, JoinRosterForm
from ..models import AssignmentInvitation, RosterEntry, User
from ..provisioning.status import current_status
from ..provisioning.workflow import (
    NOT_FOUND,
    SETUP,
    SHOW,
    FeatureDisabled,
    ProvisioningOptions,
    accept_invitation,
    get_progress,
    reconcile_assignment_repo,
    start_provisioning,
)
from ..services import get_services

invitations_bp = Blueprint(
    "invitations", __name__, url_prefix="/assignment-invitations", template_folder="../templates"
)


@invitations_bp.errorhandler(FeatureDisabled)
def feature_disabled(exc):
    # the async endpoints do not exist while import resiliency is off
    return ("Not Found", 404)


def _invitation(key: str) -> AssignmentInvitation:
    return AssignmentInvitation.query.filter_by(key=key).first_or_404()


def _user() -> User:
    return cast(User, current_user._get_current_object())


def _options() -> ProvisioningOptions:
    return ProvisioningOptions.from_flags(get_services().flags)


def _require_resiliency() -> ProvisioningOptions:
    options = _options()
    if not options.resiliency_enabled:
        raise FeatureDisabled("import_resiliency")
    return options


def _render_join_roster(invitation: AssignmentInvitation, form: JoinRosterForm):
    roster = invitation.organization.roster
    entries = [e for e in roster.entries if e.user_id is None]
    return render_template("invitations/join_roster.html", invitation=invitation, entries=entries, form=form)


@invitations_bp.route("/<key>")
@login_required
def show(key: str):
    invitation = _invitation(key)
    user = _user()
    organization = invitation.organization
    if request.args.get("roster") != "ignore" and not organization.on_roster(user):
        return _render_join_roster(invitation, JoinRosterForm())
    return render_template(
        "invitations/show.html",
        invitation=invitation,
        form=AcceptInvitationForm(),
        status=current_status(invitation, user).value,
    )


@invitations_bp.route("/<key>/accept", methods=["PATCH", "POST"])
@login_required
def accept(key: str):
    invitation = _invitation(key)
    form = AcceptInvitationForm()
    if not form.validate_on_submit():
        flash("The form expired. Please try again.", "error")
        return redirect(url_for("invitations.show", key=key))
    outcome = accept_invitation(invitation, _user(), get_services(), _options())
    if outcome.destination == SHOW:
        current_app.logger.warning("accepting invitation %s failed: %s", invitation.id, outcome.error)
        flash("We could not create your repository. Please try again.", "error")
        return redirect(url_for("invitations.show", key=key))
    return redirect(url_for(f"invitations.{outcome.destination}", key=key))


@invitations_bp.route("/<key>/create_repo", methods=["POST"])
@login_required
def create_repo(key: str):
    invitation = _invitation(key)
    return jsonify(start_provisioning(invitation, _user(), get_services(), _options()))


@invitations_bp.route("/<key>/setupv2")
@login_required
def setupv2(key: str):
    _require_resiliency()
    invitation = _invitation(key)
    return render_template(
        "invitations/setupv2.html", invitation=invitation, status=current_status(invitation, _user()).value
    )


@invitations_bp.route("/<key>/progress")
@login_required
def progress(key: str):
    _require_resiliency()
    invitation = _invitation(key)
    return jsonify(get_progress(invitation, _user()))


@invitations_bp.route("/<key>/success")
@login_required
def success(key: str):
    invitation = _invitation(key)
    outcome = reconcile_assignment_repo(invitation, _user(), get_services(), _options())
    if outcome.destination == NOT_FOUND:
        abort(404)
    if outcome.destination == SETUP:
        return redirect(url_for("invitations.setupv2", key=key))
    if outcome.destination == SHOW:
        current_app.logger.warning("recreating repository for invitation %s failed: %s", invitation.id, outcome.error)
        flash("Your repository was deleted and could not be recreated. Please try again.", "error")
        return redirect(url_for("invitations.show", key=key))
    return render_template("invitations/success.html", invitation=invitation, assignment_repo=outcome.assignment_repo)


@invitations_bp.route("/<key>/join_roster", methods=["PATCH", "POST"])
@login_required
def join_roster(key: str):
    invitation = _invitation(key)
    roster = invitation.organization.roster
    if roster is None:
        return redirect(url_for("invitations.show", key=key))
    form = JoinRosterForm()
    if not form.validate_on_submit():
        flash("Please select a valid roster entry.", "error")
        return _render_join_roster(invitation, form)
    entry = RosterEntry.query.filter_by(id=int(form.roster_entry_id.data), roster_id=roster.id).first()
    if entry is None or entry.user_id is not None:
        flash("That roster entry does not exist or is already taken.", "error")
        return _render_join_roster(invitation, form)
    entry.user_id = _user().id
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("failed to bind user to roster entry %s", entry.id)
        flash("Joining the roster failed. Please try again.", "error")
        return _render_join_roster(invitation, form)
    return redirect(url_for("invitations.show", key=key))
