# Overview: Flask API routes for the product catalogue and stock ledger.

"""
Product and stock ledger routes.

SECURITY: All routes require authentication.
- Reads are open to any signed-in role
- Catalogue edits and stock adjustments require the "inventory" feature
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import stock_service
from ..services.errors import ServiceError
from ..validation import (
    enforce_rules_product,
    get_json_object,
    parse_bool,
    parse_int,
    require_fields,
)


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products.

    Query params:
    - location: Shop | Warehouse
    - category: exact category ("All" disables the filter)
    - search: name / SKU / barcode substring
    - low_stock: true to keep rows below the configured threshold
    - branch_id: int
    """
    try:
        products = stock_service.list_products(
            location=request.args.get("location"),
            category=request.args.get("category"),
            search=request.args.get("search"),
            low_stock_only=parse_bool(request.args.get("low_stock")),
            branch_id=request.args.get("branch_id", type=int),
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400


@products_bp.post("")
@require_auth
@require_feature("inventory")
def create_product_route():
    """
    Catalogue a new product row.

    Request body: name (required), location, stock, category, price_cents,
    cost_cents, sku, barcode, box_quantity, branch_id
    """
    try:
        payload = get_json_object()
        require_fields(payload, "name")
        enforce_rules_product(payload)
        fields = {k: v for k, v in payload.items() if k not in {"name", "location", "stock"}}
        product = stock_service.register_product(
            name=payload["name"],
            location=payload.get("location") or "Shop",
            stock=parse_int(payload.get("stock", 0), "stock", minimum=0),
            actor=g.current_user,
            **fields,
        )
        return jsonify({"product": product.to_dict(include_history=True)}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = stock_service.get_product(product_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    include_history = parse_bool(request.args.get("include_history"))
    return jsonify({"product": product.to_dict(include_history=include_history)}), 200


@products_bp.patch("/<int:product_id>")
@require_auth
@require_feature("inventory")
def update_product_route(product_id: int):
    """Edit catalogue fields. Stock changes go through /adjust."""
    try:
        payload = get_json_object()
        enforce_rules_product(payload)
        product = stock_service.update_product(product_id, payload, actor=g.current_user)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/history")
@require_auth
def product_history_route(product_id: int):
    """Stock history, newest first."""
    try:
        entries = stock_service.list_history(product_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"history": [entry.to_dict() for entry in entries]}), 200


@products_bp.post("/<int:product_id>/adjust")
@require_auth
@require_feature("inventory")
def adjust_stock_route(product_id: int):
    """
    Set stock to an absolute count.

    Request body: {"stock": int, "reference_id": str (optional)}
    Returns the Adjustment entry, or null when the count was unchanged.
    """
    try:
        payload = get_json_object()
        require_fields(payload, "stock")
        entry = stock_service.adjust_stock(
            product_id,
            parse_int(payload["stock"], "stock", minimum=0),
            actor=g.current_user,
            reference_id=payload.get("reference_id"),
        )
        product = stock_service.get_product(product_id)
        return jsonify({
            "product": product.to_dict(),
            "entry": entry.to_dict() if entry else None,
        }), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/barcode/<string:barcode>")
@require_auth
def barcode_lookup_route(barcode: str):
    try:
        product = stock_service.find_by_barcode(barcode, request.args.get("location"))
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400
    return jsonify({"product": product.to_dict()}), 200
