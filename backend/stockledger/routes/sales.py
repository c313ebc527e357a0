# Overview: Flask API routes for point-of-sale checkout and sale lookups.

"""Sales API routes with feature enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import sales_service
from ..services.errors import ServiceError
from ..validation import get_json_object, parse_int, parse_line_items, require_fields


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
@require_feature("pos")
def checkout_route():
    """
    Commit a cart.

    Request body:
    {
        "items": [{"product_id": int, "quantity": int, "price_cents": int (optional)}],
        "payment_method": str (optional; falls back to the first configured method)
    }

    Returns:
        201: Sale created
        400: Empty cart / invalid quantity
        404: Unknown product
        409: Insufficient stock or non-shop product
    """
    try:
        payload = get_json_object()
        sale = sales_service.checkout(
            parse_line_items(
                payload.get("items"),
                int_fields=("product_id", "quantity", "price_cents", "cost_cents"),
            ),
            actor=g.current_user,
            payment_method=payload.get("payment_method"),
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to check out sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/cart-check")
@require_auth
@require_feature("pos")
def cart_check_route():
    """
    Add-to-cart check.

    Request body: {"product_id": int, "quantity": int, "existing_quantity": int (optional)}
    """
    try:
        payload = get_json_object()
        require_fields(payload, "product_id")
        sales_service.validate_cart_line(
            parse_int(payload["product_id"], "product_id"),
            parse_int(payload.get("quantity", 1), "quantity"),
            existing_quantity=parse_int(payload.get("existing_quantity", 0), "existing_quantity", minimum=0),
        )
        return jsonify({"ok": True}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.get("")
@require_auth
@require_feature("pos")
def list_sales_route():
    sales = sales_service.list_sales(
        cashier_id=request.args.get("cashier_id", type=int),
        limit=min(request.args.get("limit", default=200, type=int), 1000),
    )
    return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_feature("pos")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"sale": sale.to_dict()}), 200
