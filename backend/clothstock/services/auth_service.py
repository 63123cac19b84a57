# Overview: Service-layer operations for the shop operator account.

"""
Operator accounts

The shop runs under one operator account, created from ADMIN_EMAIL /
ADMIN_PASSWORD by `flask system init`. Passwords are stored as bcrypt
hashes (work factor BCRYPT_ROUNDS); sessions live in session_service.py.
"""

import bcrypt
import re

from flask import current_app

from ..extensions import db
from ..models import User
from ..time_utils import utcnow

MIN_PASSWORD_LENGTH = 8

# (pattern, what is missing)
PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>]"), "a special character"),
)


class PasswordValidationError(Exception):
    """Password rejected by the strength rules."""


def validate_password_strength(password: str) -> None:
    """
    Enforce MIN_PASSWORD_LENGTH and one character from each PASSWORD_RULES class.

    Raises PasswordValidationError naming the first rule that fails.
    """
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password needs at least {MIN_PASSWORD_LENGTH} characters")
    for pattern, label in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password needs {label}")


def hash_password(password: str) -> str:
    """Validate, then bcrypt-hash. Tests lower BCRYPT_ROUNDS to keep the suite fast."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison. A malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(email: str, password: str) -> User:
    """
    Create an operator account.

    Raises:
        ValueError: email missing or already registered
        PasswordValidationError: weak password
    """
    email = _normalize_email(email)
    if not email:
        raise ValueError("email is required")
    if db.session.query(User.id).filter_by(email=email).first():
        raise ValueError("Email already exists")

    user = User(email=email, password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    return user


def ensure_operator(email: str, password: str) -> tuple[User, bool]:
    """
    Bootstrap the operator from configuration.

    Safe to call repeatedly (idempotent): an existing account is left untouched.
    Returns (user, created).
    """
    existing = db.session.query(User).filter_by(email=_normalize_email(email)).first()
    if existing:
        return existing, False
    return create_user(email, password), True


def authenticate(email: str, password: str) -> User | None:
    """The active operator matching the credentials, else None. Stamps last_login_at."""
    user = (
        db.session.query(User)
        .filter(User.email == _normalize_email(email), User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
