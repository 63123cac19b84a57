# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

# backend/clothstock/routes/reports.py
"""
Reporting API routes.

All reports are read-only. Range params (start, end) accept YYYY-MM-DD or
ISO-8601; the default range is the current month up to now.
"""

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..decorators import require_auth, error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    """
    Query params:
    - start, end
    - group_by: variant (default) | product
    """
    try:
        report = reporting_service.sales_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "variant"),
        )
        return jsonify(report), 200
    except ReportError as e:
        return error_response(e)


@reports_bp.get("/daily")
@require_auth
def daily_report_route():
    try:
        days = reporting_service.daily_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify({"items": days, "count": len(days)}), 200
    except ReportError as e:
        return error_response(e)


@reports_bp.get("/top-products")
@require_auth
def top_products_route():
    try:
        items = reporting_service.top_products(
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=request.args.get("limit", 10),
        )
        return jsonify({"items": items, "count": len(items)}), 200
    except ReportError as e:
        return error_response(e)
