# Overview: Flask API routes for sales, inventory and financial reports.

"""
Report routes. Read-only.

SECURITY: sales and inventory reports need the "dashboard" feature; the
financial summary needs "accounting".
"""
from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_feature
from ..services import report_service
from ..services.errors import ServiceError
from ..validation import parse_date, parse_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_range() -> dict:
    return {
        "start": parse_date(request.args.get("start"), "start"),
        "end": parse_date(request.args.get("end"), "end"),
    }


@reports_bp.get("/sales")
@require_auth
@require_feature("dashboard")
def sales_summary_route():
    """Query params: start, end (YYYY-MM-DD, inclusive)."""
    try:
        summary = report_service.sales_summary(**_date_range())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"summary": summary}), 200


@reports_bp.get("/top-products")
@require_auth
@require_feature("dashboard")
def top_products_route():
    """Query params: limit (default 5, max 100), start, end."""
    try:
        limit = parse_int(
            request.args.get("limit", report_service.DEFAULT_TOP_PRODUCTS), "limit", minimum=1
        )
        products = report_service.top_products(limit=limit, **_date_range())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"products": products}), 200


@reports_bp.get("/inventory")
@require_auth
@require_feature("dashboard")
def inventory_status_route():
    """Query params: threshold (optional; defaults to the configured low-stock threshold)."""
    try:
        threshold = request.args.get("threshold")
        status = report_service.inventory_status(
            low_stock_threshold=parse_int(threshold, "threshold", minimum=0) if threshold else None,
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"inventory": status}), 200


@reports_bp.get("/financial")
@require_auth
@require_feature("accounting")
def financial_summary_route():
    """Income statement and balance-sheet figures. Query params: start, end."""
    try:
        summary = report_service.financial_summary(**_date_range())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"financial": summary}), 200
