# Overview: Login, logout and current-operator endpoints.

"""
/api/auth

The operator account comes from `flask system init`; there is no sign-up
route. Login hands back an opaque bearer token that every other data route
expects in the Authorization header.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import json_object_body, require_auth

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _unauthorized(message: str):
    return jsonify({"error": message, "code": "UNAUTHORIZED"}), 401


@auth_bp.post("/login")
def login_route():
    body, invalid = json_object_body()
    if invalid:
        return invalid
    email, password = body.get("email"), body.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required", "code": "VALIDATION_ERROR"}), 400

    operator = auth_service.authenticate(email, password)
    if operator is None:
        current_app.logger.warning("Rejected login for %s", email)
        return _unauthorized("Invalid credentials")

    session, token = session_service.create_session(operator.id)
    current_app.logger.info("Operator %s logged in (session %s)", operator.email, session.id)
    return jsonify({
        "user": operator.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented token; later requests with it get 401."""
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
