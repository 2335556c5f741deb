from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request, session

from health_procure.directory import current_directory
from health_procure.domain.contracts import User
from health_procure.errors import AuthenticationError, ValidationError
from health_procure.ui_strings import error_message, queue_title, success_message


LOGGER = logging.getLogger("health_procure")

SESSION_USER_KEY = "user_id"

auth_bp = Blueprint("auth", __name__)

_OPEN_PATHS = {"/api/auth/login", "/api/auth/logout", "/health"}


def register_auth(app) -> None:
    app.register_blueprint(auth_bp)

    @app.before_request
    def _require_login():
        if not app.config.get("AUTH_ENABLED", True):
            return None
        if app.config.get("TESTING"):
            return None

        path = request.path or "/"
        if path in _OPEN_PATHS or not path.startswith("/api/"):
            return None
        if current_user() is not None:
            return None
        return jsonify({"error": "auth_required", "message": error_message("auth_required")}), 401


def current_user() -> User | None:
    return current_directory().get(session.get(SESSION_USER_KEY))


def require_current_user() -> User:
    user = current_user()
    if user is None:
        raise AuthenticationError()
    return user


@auth_bp.route("/api/auth/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    user_id = str(payload.get("userId") or "").strip()
    if not user_id:
        raise ValidationError(code="validation_error", details="userId is required")

    user = current_directory().get(user_id)
    if user is None:
        LOGGER.warning("login_rejected", extra={"user_id": user_id})
        raise AuthenticationError(code="user_not_found", message_key="user_not_found", details=user_id)

    session.clear()
    session[SESSION_USER_KEY] = user.id
    session.permanent = True
    LOGGER.info("login_succeeded", extra={"user_id": user.id, "role": user.role.value})
    return jsonify({"user": user.to_dict(), "message": success_message("logged_in")})


@auth_bp.route("/api/auth/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"message": success_message("logged_out")})


@auth_bp.route("/api/auth/me", methods=["GET"])
def me():
    user = require_current_user()
    return jsonify({"user": user.to_dict(), "queueTitle": queue_title(user.role.value)})
