# backend/smartshop/routes/system.py
"""
GET /health: database reachability plus a few row counts.

Answers 503 when any check is unhealthy so load balancers can act on it.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import DBAPIError

from ..extensions import db
from ..models import Sale, SessionToken, Shop
from smartshop.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def _timed(name: str, check) -> dict:
    """Run check() and wrap its details with status and latency."""
    started = time.perf_counter()
    try:
        details = check()
    except DBAPIError:
        db.session.rollback()
        current_app.logger.exception("Health check %s failed", name)
        result = {"status": "unhealthy", "error": "Database error"}
    else:
        result = {"status": "healthy", "details": details}
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result


def _database_check() -> dict:
    return {
        "shops": db.session.query(Shop).count(),
        "sales": db.session.query(Sale).count(),
    }


def _sessions_check() -> dict:
    now = utcnow()
    live = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    return {
        "active_sessions": live.filter(SessionToken.expires_at >= now).count(),
        "expired_pending_cleanup": live.filter(SessionToken.expires_at < now).count(),
    }


@system_bp.get("/health")
def health():
    checks = {
        "database": _timed("database", _database_check),
        "sessions": _timed("sessions", _sessions_check),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": checks,
    }
    return body, 200 if healthy else 503
