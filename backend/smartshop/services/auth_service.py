# Overview: Shop owner accounts: password policy, bcrypt hashing, login.

"""
Owner accounts.

Passwords are bcrypt-hashed (cost 12) after passing PASSWORD_RULES.
Logins accept either the username or the email address. Tokens are
issued by session_service, not here.
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from smartshop.time_utils import utcnow

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>_\-+=?/\\\[\];~`]"), "Password must contain at least one special character"),
)


class PasswordValidationError(Exception):
    pass


class UserExistsError(Exception):
    """Username or email already registered."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, message in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(message)


def hash_password(password: str) -> str:
    validate_password_strength(password)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt check. A hash bcrypt cannot parse never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def create_user(username: str, email: str, password: str, name: str | None = None) -> User:
    """
    Register an owner.

    Raises ValueError (blank username/email), PasswordValidationError, or
    UserExistsError (also when a concurrent registration wins the race).
    """
    username = (username or "").strip()
    email = _normalize_email(email)
    if not username or not email:
        raise ValueError("username and email are required")

    taken = db.session.query(User.id).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if taken:
        raise UserExistsError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        name=(name or "").strip() or None,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise UserExistsError("Username or email already exists")

    current_app.logger.info("Registered user id=%s username=%s", user.id, user.username)
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """Active user matching identifier and password, or None. Stamps last_login_at."""
    identifier = (identifier or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == _normalize_email(identifier)),
        User.is_active.is_(True),
    ).first()

    if user is None or not verify_password(password, user.password_hash):
        current_app.logger.info("Failed login for %r", identifier)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
