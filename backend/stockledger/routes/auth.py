# Overview: Flask API routes for login, logout and staff accounts.

"""
Authentication API routes

- Login returns a bearer token; send it as "Authorization: Bearer <token>"
- Logout revokes the token
- Self-registration is disabled; accounts are created by users with the
  "employees" feature or through the CLI
"""

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..permissions import features_for
from ..services import auth_service
from ..services import session_service
from ..services.errors import ServiceError
from ..validation import get_json_object, parse_optional_int, require_fields


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["features"] = sorted(features_for(user.role))
    return data


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body: {"username": str, "password": str}

    Returns:
        200: {"user": {...}, "token": str}
        401: Invalid credentials
    """
    try:
        payload = get_json_object()
        require_fields(payload, "username", "password")
        user = auth_service.authenticate(payload["username"], payload["password"])
        _session, token = session_service.create_session(user)
        return jsonify({"user": _user_payload(user), "token": token}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    auth_service.record_logout(g.current_user)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": _user_payload(g.current_user)}), 200


@auth_bp.get("/users")
@require_auth
@require_feature("employees")
def list_users_route():
    return jsonify({"users": [user.to_dict() for user in auth_service.list_users()]}), 200


@auth_bp.post("/users")
@require_auth
@require_feature("employees")
def create_user_route():
    """
    Create a staff account.

    Request body: {"username", "name", "password", "role", "branch_id" (optional)}
    """
    try:
        payload = get_json_object()
        require_fields(payload, "username", "name", "password")
        user = auth_service.create_user(
            username=payload["username"],
            name=payload["name"],
            password=payload["password"],
            role=payload.get("role") or "CASHIER",
            branch_id=parse_optional_int(payload.get("branch_id"), "branch_id"),
            actor=g.current_user,
        )
        return jsonify({"user": user.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
