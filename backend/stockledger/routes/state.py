# Overview: Flask API routes for whole-state snapshot export and import.

from flask import Blueprint, jsonify, current_app

from ..decorators import require_auth, require_feature, require_role
from ..services import snapshot_service
from ..services.errors import ServiceError
from ..validation import get_json_object


state_bp = Blueprint("state", __name__, url_prefix="/api/state")


@state_bp.get("/export")
@require_auth
@require_feature("settings")
def export_state_route():
    return jsonify(snapshot_service.export_state()), 200


@state_bp.post("/import")
@require_auth
@require_role("ADMIN")
def import_state_route():
    """
    Replace all data with the posted snapshot.

    Every session is revoked, including the caller's.
    """
    try:
        counts = snapshot_service.import_state(get_json_object())
        return jsonify({"imported": counts}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to import state")
        return jsonify({"error": "Internal server error"}), 500
