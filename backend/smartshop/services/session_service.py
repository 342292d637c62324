# Overview: Bearer sessions for shop owners: issue, validate, revoke.

"""
Login sessions.

A login hands the client a random token once; only its SHA-256 is kept in
session_tokens. A session dies on the first of:
- 24 hours after login
- SESSION_IDLE_TIMEOUT_MINUTES without a request (revoked, reason "Idle timeout")
- the owner being deactivated (revoked)
- logout
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, Shop, User
from smartshop.time_utils import utcnow

SESSION_LIFETIME = timedelta(hours=24)
DEFAULT_IDLE_MINUTES = 120

REASON_IDLE = "Idle timeout"
REASON_DEACTIVATED = "User account deactivated"


@dataclass
class SessionContext:
    user: User
    session: SessionToken

    @property
    def shop(self) -> Shop | None:
        return self.user.shop


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_live(token_hash: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == token_hash, SessionToken.is_revoked.is_(False))
        .first()
    )


def _rejection(session: SessionToken, now: datetime) -> tuple[bool, str | None]:
    """(rejected, revoke_reason). Expired sessions are refused but left as-is."""
    if session.is_expired(now):
        return True, None
    idle_minutes = current_app.config.get("SESSION_IDLE_TIMEOUT_MINUTES", DEFAULT_IDLE_MINUTES)
    if session.is_idle(now, timedelta(minutes=idle_minutes)):
        return True, REASON_IDLE
    if session.user is None or not session.user.is_active:
        return True, REASON_DEACTIVATED
    return False, None


def create_session(user_id: int, user_agent: str | None = None, ip_address: str | None = None):
    """Open a session for user_id. Returns (SessionToken, plaintext token)."""
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = secrets.token_hex(32)
    now = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_LIFETIME,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its SessionContext, or None.

    A successful call slides last_used_at forward.
    """
    session = _find_live(hash_token(token))
    if session is None:
        return None

    now = utcnow()
    rejected, reason = _rejection(session, now)
    if rejected:
        if reason:
            session.revoke(reason, now)
            db.session.commit()
            current_app.logger.info("Session id=%s revoked: %s", session.id, reason)
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _find_live(hash_token(token))
    if session is None:
        return False
    session.revoke(reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Used when an owner is deactivated. Returns how many sessions were closed."""
    now = utcnow()
    live = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in live:
        session.revoke(reason, now)
    db.session.commit()
    return len(live)
