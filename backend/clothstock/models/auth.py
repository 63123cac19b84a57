from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Shop operator account.

    Normally a single row bootstrapped from ADMIN_EMAIL / ADMIN_PASSWORD;
    nothing stops a second operator from being added later.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)  # bcrypt
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sessions = db.relationship("SessionToken", back_populates="user", lazy="select")

    def to_dict(self) -> dict:
        # password_hash never leaves the server
        return dict(
            id=self.id,
            email=self.email,
            is_active=self.is_active,
            created_at=to_utc_z(self.created_at),
            last_login_at=to_utc_z(self.last_login_at),
        )


class SessionToken(db.Model):
    """Login session. The bearer token itself is never stored, only its SHA-256."""
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", back_populates="sessions")

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            user_id=self.user_id,
            created_at=to_utc_z(self.created_at),
            expires_at=to_utc_z(self.expires_at),
            is_revoked=self.is_revoked,
        )
