# Overview: Owner sign-up, login, logout and "who am I".

# backend/smartshop/routes/auth.py
"""
/api/auth

Sign-up (when ALLOW_SIGNUP is on) and login both answer with
{"user", "token", "session"}. The token goes in `Authorization: Bearer`.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..services import auth_service, session_service
from ..services.auth_service import PasswordValidationError, UserExistsError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _issue_token(user, status: int):
    """Open a session for the client making this request."""
    record, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    body = {"user": user.to_dict(), "token": token, "session": record.to_dict()}
    return jsonify(body), status


@auth_bp.post("/register")
def register_route():
    if not current_app.config.get("ALLOW_SIGNUP", True):
        return jsonify({"error": "Self-registration is disabled"}), 403

    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    fields = {k: body.get(k) for k in ("username", "email", "password")}
    if not all(fields.values()):
        return jsonify({"error": "username, email and password required"}), 400

    try:
        user = auth_service.create_user(name=body.get("name"), **fields)
        return _issue_token(user, 201)
    except UserExistsError as e:
        return jsonify({"error": str(e)}), 409
    except (PasswordValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Sign-up failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """Accepts {"username" | "email", "password"}."""
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    identifier = body.get("username") or body.get("email")
    password = body.get("password")
    if not identifier or not password:
        return jsonify({"error": "username/email and password required"}), 400

    try:
        user = auth_service.authenticate(identifier, password)
        if user is None:
            return jsonify({"error": "Invalid credentials"}), 401
        return _issue_token(user, 200)
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
def me_route():
    token = bearer_token()
    context = session_service.validate_session(token) if token else None
    return jsonify({"user": context.user.to_dict() if context else None}), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token(), reason="User logout")
    current_app.logger.info("User id=%s logged out", g.current_user.id)
    return jsonify({"success": True}), 200
