# Overview: Service-layer operations for bearer sessions.

"""
Operator sessions

The client holds an opaque bearer token; the database only ever sees its
SHA-256 digest. A session ends when SESSION_HOURS have passed since login
or when the operator logs out, whichever comes first.
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow

TOKEN_BYTES = 32


def generate_token() -> str:
    """New opaque token: TOKEN_BYTES random bytes as hex. Handed to the client once."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """
    Digest stored in session_tokens.token_hash.

    WHY: a random token has enough entropy that an unsalted fast hash is
    sufficient; bcrypt is reserved for passwords.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """Open a session for the operator. Returns (row, token); only the row is persisted."""
    if db.session.get(User, user_id) is None:
        raise ValueError(f"No operator with id {user_id}")

    token = generate_token()
    issued = utcnow()
    row = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued,
        expires_at=issued + timedelta(hours=current_app.config.get("SESSION_HOURS", 24)),
        is_revoked=False,
    )
    db.session.add(row)
    db.session.commit()
    return row, token


def validate_session(token: str) -> User | None:
    """
    Return the operator behind a token, or None if the token is unknown,
    expired, revoked or belongs to a deactivated account.
    """
    row = _live_session(token)
    if row is None or row.expires_at < utcnow():
        return None

    operator = row.user
    if operator is None or not operator.is_active:
        return None
    return operator


def revoke_session(token: str) -> bool:
    """Logout. True when a live session was found and revoked."""
    row = _live_session(token)
    if row is None:
        return False

    row.is_revoked = True
    row.revoked_at = utcnow()
    db.session.commit()
    return True
