# Overview: Flask API routes for business configuration and branches.

from flask import Blueprint, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import settings_service
from ..services.errors import ServiceError
from ..validation import get_json_object, require_fields


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    config = settings_service.get_config()
    db.session.commit()
    return jsonify({"config": config.to_dict()}), 200


@settings_bp.patch("")
@require_auth
@require_feature("settings")
def update_settings_route():
    """
    Update configuration.

    Request body (all optional): store_name, currency, low_stock_threshold,
    tax_rate (percent) or tax_rate_bps, ai_enabled, payment_methods
    """
    try:
        config = settings_service.update_config(get_json_object(), actor=g.current_user)
        return jsonify({"config": config.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("/branches")
@require_auth
def list_branches_route():
    return jsonify({"branches": [b.to_dict() for b in settings_service.list_branches()]}), 200


@settings_bp.post("/branches")
@require_auth
@require_feature("settings")
def create_branch_route():
    """Request body: {"name": str, "phone": str, "email": str}"""
    try:
        payload = get_json_object()
        require_fields(payload, "name")
        branch = settings_service.create_branch(
            name=payload["name"],
            phone=payload.get("phone"),
            email=payload.get("email"),
            actor=g.current_user,
        )
        return jsonify({"branch": branch.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create branch")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.patch("/branches/<int:branch_id>")
@require_auth
@require_feature("settings")
def update_branch_route(branch_id: int):
    try:
        branch = settings_service.update_branch(branch_id, get_json_object(), actor=g.current_user)
        return jsonify({"branch": branch.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update branch")
        return jsonify({"error": "Internal server error"}), 500
