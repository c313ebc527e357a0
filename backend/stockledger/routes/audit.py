# Overview: Flask API route for reading the audit log.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_feature
from ..services import audit_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_auth
@require_feature("dashboard")
def list_logs_route():
    """
    Audit entries, newest first.

    Query params: type (LogType), search (substring), limit (<= 500)
    """
    limit = request.args.get("limit", default=audit_service.AUDIT_LOG_LIMIT, type=int)
    try:
        logs = audit_service.list_logs(
            log_type=request.args.get("type"),
            search=request.args.get("search"),
            limit=max(0, min(limit, audit_service.AUDIT_LOG_LIMIT)),
        )
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400
    return jsonify({"logs": [entry.to_dict() for entry in logs]}), 200
