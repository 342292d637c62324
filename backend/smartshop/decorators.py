# Overview: Route guards: bearer-token login and shop resolution.

from functools import wraps

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import OperationalError

from .services import session_service, shop_service

BEARER_PREFIX = "Bearer "


def bearer_token() -> str | None:
    """Token from `Authorization: Bearer <token>`, or None."""
    header = request.headers.get("Authorization") or ""
    if not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):].strip() or None


def require_auth(f):
    """
    401 unless the request carries a live session token.

    On success g.current_user and g.session_context are set. A database
    outage during the lookup answers 503 instead.
    """
    @wraps(f)
    def guarded(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        try:
            context = session_service.validate_session(token)
        except OperationalError:
            current_app.logger.exception("Session lookup failed")
            return jsonify({"error": "Service unavailable"}), 503
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return guarded


def require_shop(f):
    """Stack under @require_auth. Puts the caller's Shop in g.shop or answers 404."""
    @wraps(f)
    def guarded(*args, **kwargs):
        context = getattr(g, "session_context", None)
        if context is None:
            return jsonify({"error": "Authentication required"}), 401

        try:
            shop = context.shop or shop_service.get_shop_for_user(context.user.id)
        except OperationalError:
            current_app.logger.exception("Shop lookup failed")
            return jsonify({"error": "Service unavailable"}), 503
        if shop is None:
            return jsonify({"error": "Shop not found"}), 404

        g.shop = shop
        return f(*args, **kwargs)

    return guarded
