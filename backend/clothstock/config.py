# backend/clothstock/config.py
from __future__ import annotations
import os


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative sqlite paths resolve under backend/instance/
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///clothstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Single shop operator, created by `flask system init`
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@clothstock.local")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "Password123!")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))

    # Calendar day used for sale/return numbers (IANA zone name)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # "counter" (per-day counter row) or "count" (highest used + retry on collision)
    DOCUMENT_NUMBER_STRATEGY = os.environ.get("DOCUMENT_NUMBER_STRATEGY", "counter")

    # Browser origins allowed to call the API (the POS frontend dev server)
    CORS_ORIGINS = _csv(os.environ.get(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ))
