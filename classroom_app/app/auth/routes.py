from __future__ import annotations
import secrets
from urllib.parse import urlencode
from flask import Blueprint, current_app, flash, redirect, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError
import requests
from .. import db
from ..models import User

auth_bp = Blueprint("auth", __name__, template_folder="../templates")

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"


@auth_bp.route("/set-language", methods=["POST"])
def set_language():
    lang = request.form.get("lang")
    if lang in ("en", "ja"):
        session["lang"] = lang
    return redirect(request.referrer or url_for("auth.login"))


def _safe_next(target: "str | None") -> "str | None":
    # only allow relative paths on this site
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@auth_bp.route("/login")
def login():
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get("next")) or "/")
    client_id = current_app.config.get("GITHUB_CLIENT_ID")
    if not client_id:
        current_app.logger.error("GitHub OAuth client id not configured (GITHUB_CLIENT_ID missing)")
        return "GitHub OAuth not configured on server", 500
    state = secrets.token_urlsafe(16)
    session["oauth_state"] = state
    session["login_next"] = _safe_next(request.args.get("next"))
    params = {
        "client_id": client_id,
        "redirect_uri": url_for("auth.github_callback", _external=True),
        "scope": "user:email",
        "state": state,
    }
    return redirect(f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}")


@auth_bp.route("/auth/github/callback")
def github_callback():
    code = request.args.get("code")
    if not code:
        return "Missing code", 400
    if request.args.get("state") != session.pop("oauth_state", None):
        return "Invalid OAuth state", 400
    data = {
        "client_id": current_app.config.get("GITHUB_CLIENT_ID"),
        "client_secret": current_app.config.get("GITHUB_CLIENT_SECRET"),
        "code": code,
    }
    timeout = float(current_app.config.get("GITHUB_TIMEOUT", 10))
    try:
        resp = requests.post(GITHUB_TOKEN_URL, data=data, headers={"Accept": "application/json"}, timeout=timeout)
        access_token = resp.json().get("access_token") if resp.status_code == 200 else None
        if not access_token:
            current_app.logger.error("GitHub token exchange failed: %s %s", resp.status_code, resp.text)
            return "OAuth failed", 400
        api_url = current_app.config.get("GITHUB_API_URL", "https://api.github.com")
        resp = requests.get(f"{api_url}/user", headers={"Authorization": f"Bearer {access_token}"}, timeout=timeout)
    except requests.RequestException:
        current_app.logger.exception("GitHub OAuth request failed")
        return "OAuth failed", 502
    if resp.status_code != 200:
        current_app.logger.error("GitHub user lookup failed: %s %s", resp.status_code, resp.text)
        return "OAuth failed", 400
    profile = resp.json()

    user = User.query.filter_by(uid=profile["id"]).first()
    if user is None:
        user = User(uid=profile["id"])
    user.login = profile["login"]
    user.set_token(access_token)
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("failed to store GitHub user %s", profile.get("login"))
        flash("Sign-in failed. Please try again.", "error")
        return redirect(url_for("auth.login"))
    login_user(user)
    return redirect(session.pop("login_next", None) or "/")


@auth_bp.route("/logout")
@login_required
def logout():
    logout_user()
    return redirect(url_for("auth.login"))
