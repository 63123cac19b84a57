# Overview: Request decorators and error response helpers for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated operator and g.session_token to
    the raw token (used by logout).

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - Operator account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHORIZED"}), 401

        g.current_user = user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def error_response(exc):
    """
    JSON body for a domain error: {"error", "code", "details"} with the
    error's own HTTP status (400 when it carries none).
    """
    body = {
        "error": str(exc),
        "code": getattr(exc, "code", "VALIDATION_ERROR"),
        "details": getattr(exc, "details", {}) or {},
    }
    return jsonify(body), getattr(exc, "status", 400)


def json_object_body():
    """
    Request body as a dict.

    Returns (data, None), where a missing or unparsable body reads as {}, or
    (None, response) with a 400 VALIDATION_ERROR when the JSON is not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        body = {"error": "JSON body must be an object", "code": "VALIDATION_ERROR", "details": {}}
        return None, (jsonify(body), 400)
    return data, None
