# backend/clothstock/routes/system.py
"""
GET /api/health

Public. Reports whether the database answers and how quickly, plus a few
row counts for the frontend's status badge.
"""

from time import perf_counter

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, User
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def database_status() -> dict:
    started = perf_counter()
    check = {}
    try:
        check["details"] = {
            "products": db.session.query(Product).count(),
            "sales": db.session.query(Sale).count(),
            "operators": db.session.query(User).count(),
        }
        check["status"] = "healthy"
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Health check could not query the database")
        check = {"status": "unhealthy", "error": "Database error"}
    check["latency_ms"] = round((perf_counter() - started) * 1000, 2)
    return check


@system_bp.get("/health")
def health():
    database = database_status()
    ok = database["status"] == "healthy"
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "document_number_strategy": current_app.config.get("DOCUMENT_NUMBER_STRATEGY"),
        "checks": {"database": database},
    }, (200 if ok else 503)
