# Overview: Flask API routes for barcode receiving and supplier deliveries.

"""
Receiving routes.

SECURITY: All routes require authentication and the "inventory" feature.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import receive_service
from ..services.errors import ServiceError
from ..validation import (
    ValidationError,
    get_json_object,
    parse_date,
    parse_int,
    parse_line_items,
    require_fields,
)


receiving_bp = Blueprint("receiving", __name__, url_prefix="/api/receiving")


@receiving_bp.post("/scan")
@require_auth
@require_feature("inventory")
def scan_route():
    """
    Resolve a scanned barcode for the batch being built.

    Request body: {"barcode": str, "location": "Shop" | "Warehouse" (optional)}

    Returns:
        200: Product found
        404: Barcode not registered
    """
    try:
        payload = get_json_object()
        require_fields(payload, "barcode")
        product = receive_service.resolve_scan(
            str(payload["barcode"]),
            payload.get("location"),
            actor=g.current_user,
        )
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to resolve scan")
        return jsonify({"error": "Internal server error"}), 500


@receiving_bp.post("/batch")
@require_auth
@require_feature("inventory")
def receive_batch_route():
    """
    Finalize a receiving batch.

    Request body:
    {
        "lines": [{"product_id": int, "quantity": int, "is_box": bool}]
    }
    """
    try:
        payload = get_json_object()
        entries = receive_service.receive_batch(
            parse_line_items(payload.get("lines"), bool_fields=("is_box",)),
            actor=g.current_user,
        )
        return jsonify({"entries": [entry.to_dict() for entry in entries]}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive batch")
        return jsonify({"error": "Internal server error"}), 500


@receiving_bp.get("/incoming")
@require_auth
@require_feature("inventory")
def list_incoming_route():
    try:
        deliveries = receive_service.list_incoming(request.args.get("status"))
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400
    return jsonify({"incoming": [d.to_dict() for d in deliveries]}), 200


@receiving_bp.post("/incoming")
@require_auth
@require_feature("inventory")
def create_incoming_route():
    """
    Register an expected supplier delivery.

    Request body:
    {
        "supplier": str,
        "expected_date": "YYYY-MM-DD" (optional),
        "driver_name": str (optional),
        "items": [{"product_id": int, "expected_qty": int}]
    }
    """
    try:
        payload = get_json_object()
        require_fields(payload, "supplier")
        items = parse_line_items(payload.get("items"), int_fields=("product_id", "expected_qty"))
        incoming = receive_service.create_incoming(
            supplier=payload["supplier"],
            items=items,
            actor=g.current_user,
            expected_date=parse_date(payload.get("expected_date"), "expected_date"),
            driver_name=payload.get("driver_name"),
        )
        return jsonify({"incoming": incoming.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create incoming delivery")
        return jsonify({"error": "Internal server error"}), 500


@receiving_bp.get("/incoming/<int:incoming_id>")
@require_auth
@require_feature("inventory")
def get_incoming_route(incoming_id: int):
    try:
        incoming = receive_service.get_incoming(incoming_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"incoming": incoming.to_dict()}), 200


@receiving_bp.post("/incoming/<int:incoming_id>/receive")
@require_auth
@require_feature("inventory")
def receive_incoming_route(incoming_id: int):
    """
    Book an expected delivery into stock.

    Request body: {"broken": {"<product_id>": int}} (optional)
    """
    try:
        payload = get_json_object()
        broken_raw = payload.get("broken") or {}
        if not isinstance(broken_raw, dict):
            raise ValidationError("broken must be an object keyed by product_id")
        broken = {
            parse_int(product_id, "product_id"): parse_int(qty, "broken_qty", minimum=0)
            for product_id, qty in broken_raw.items()
        }
        incoming = receive_service.receive_incoming(incoming_id, broken, actor=g.current_user)
        return jsonify({"incoming": incoming.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive incoming delivery")
        return jsonify({"error": "Internal server error"}), 500
