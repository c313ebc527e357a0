# Overview: Flask API routes for branch transfers and outgoing deliveries.

"""
Transfer and delivery routes.

Transfers move warehouse stock to a branch shop floor:
create (decrements the warehouse) -> status updates -> receive
(increments the branch). Customer deliveries track sold goods only.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import transfer_service
from ..services.errors import ServiceError
from ..validation import get_json_object, parse_int, parse_line_items, parse_optional_int, require_fields


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.post("")
@require_auth
@require_feature("inventory")
def create_transfer_route():
    """
    Authorize a warehouse-to-branch transfer.

    Request body:
    {
        "destination_branch_id": int,
        "lines": [{"product_id": int, "quantity": int}],
        "driver_id": int (optional)
    }

    Returns:
        201: Transfer created, warehouse stock decremented
        400: Empty or invalid lines
        404: Unknown branch or product
        409: Insufficient warehouse stock / non-warehouse product
    """
    try:
        payload = get_json_object()
        require_fields(payload, "destination_branch_id")
        delivery = transfer_service.create_transfer(
            parse_int(payload["destination_branch_id"], "destination_branch_id"),
            parse_line_items(payload.get("lines")),
            actor=g.current_user,
            driver_id=parse_optional_int(payload.get("driver_id"), "driver_id"),
        )
        return jsonify({"delivery": delivery.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.get("")
@require_auth
@require_feature("deliveries")
def list_deliveries_route():
    """Query params: type (Customer | Transfer), status, driver_id."""
    try:
        deliveries = transfer_service.list_deliveries(
            delivery_type=request.args.get("type"),
            status=request.args.get("status"),
            driver_id=request.args.get("driver_id", type=int),
        )
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400
    return jsonify({"deliveries": [d.to_dict() for d in deliveries]}), 200


@transfers_bp.get("/<int:delivery_id>")
@require_auth
@require_feature("deliveries")
def get_delivery_route(delivery_id: int):
    try:
        delivery = transfer_service.get_delivery(delivery_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"delivery": delivery.to_dict()}), 200


@transfers_bp.post("/<int:delivery_id>/status")
@require_auth
@require_feature("deliveries")
def advance_status_route(delivery_id: int):
    """
    Move a delivery forward.

    Request body: {"status": "Picked Up" | "Out for Delivery" | "Delivered", "note": str (optional)}

    Returns:
        200: Status updated
        409: Backward or repeated transition
    """
    try:
        payload = get_json_object()
        require_fields(payload, "status")
        delivery = transfer_service.advance_status(
            delivery_id,
            payload["status"],
            actor=g.current_user,
            note=payload.get("note"),
        )
        return jsonify({"delivery": delivery.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update delivery status")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.post("/<int:delivery_id>/receive")
@require_auth
@require_feature("deliveries")
def receive_transfer_route(delivery_id: int):
    """Book a transfer into the destination branch's shop stock."""
    try:
        payload = get_json_object()
        delivery = transfer_service.receive_transfer(delivery_id, actor=g.current_user, note=payload.get("note"))
        return jsonify({"delivery": delivery.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive transfer")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.post("/customer")
@require_auth
@require_feature("deliveries")
def create_customer_delivery_route():
    """
    Schedule delivery of a completed sale.

    Request body: {"sale_id": int, "destination": str, "driver_id": int (optional)}
    """
    try:
        payload = get_json_object()
        require_fields(payload, "sale_id", "destination")
        delivery = transfer_service.create_customer_delivery(
            parse_int(payload["sale_id"], "sale_id"),
            payload["destination"],
            actor=g.current_user,
            driver_id=parse_optional_int(payload.get("driver_id"), "driver_id"),
        )
        return jsonify({"delivery": delivery.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create customer delivery")
        return jsonify({"error": "Internal server error"}), 500
