"""Auth blueprint — /auth/*

JSON login / logout. A successful login with ``autologin`` set also
returns an autologin cookie; visitors presenting a fresh one are logged in
before the request runs.

Route Map:
  POST /auth/login    — Log in with login + password
  POST /auth/logout   — Log out, dropping autologin tokens
  GET  /auth/me       — The current user
  GET  /auth/csrf     — CSRF token for the X-CSRFToken header
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from app.extensions import db, limiter
from app.models.token import Token
from app.services import user_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

AUTOLOGIN_COOKIE = "autologin"


def _user_dict(user):
    return {
        "id": user.id,
        "login": user.login,
        "name": user.name(),
        "mail": user.visible_mail,
        "admin": user.is_admin,
        "logged": user.logged,
        "language": user.language,
    }


@auth_bp.before_app_request
def autologin():
    """Log in visitors holding a valid autologin cookie."""
    if current_user.is_authenticated:
        return
    if not current_app.config.get("AUTOLOGIN_DAYS"):
        return
    token_value = request.cookies.get(AUTOLOGIN_COOKIE)
    if not token_value:
        return
    user = user_service.try_to_autologin(token_value)
    if user is not None:
        login_user(user)
        db.session.commit()


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute")
def login():
    """Body: {"login": ..., "password": ..., "autologin": bool}."""
    data = request.get_json(silent=True) or {}
    login_name = (data.get("login") or "").strip()
    password = data.get("password") or ""

    if not login_name or not password:
        return jsonify({"error": "Login and password are required."}), 400

    user = user_service.try_to_login(login_name, password)
    if user is None:
        return jsonify({"error": "Invalid user or password."}), 401

    login_user(user)

    token_value = None
    days = current_app.config.get("AUTOLOGIN_DAYS")
    if data.get("autologin") and days:
        token_value = user_service.autologin_token(user)

    db.session.commit()
    logger.info(f"User {user.login} logged in")

    response = jsonify({"user": _user_dict(user)})
    if token_value:
        response.set_cookie(
            AUTOLOGIN_COOKIE,
            token_value,
            max_age=days * 24 * 3600,
            httponly=True,
            secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
            samesite="Lax",
        )
    return response


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        Token.query.filter_by(user_id=current_user.id, action="autologin").delete()
        db.session.commit()
    logout_user()
    response = jsonify({"ok": True})
    response.delete_cookie(AUTOLOGIN_COOKIE)
    return response


@auth_bp.route("/me")
def me():
    return jsonify({"user": _user_dict(current_user)})


@auth_bp.route("/csrf")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})
