# Overview: Flask API routes for operating expenses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_feature
from ..services import expense_service
from ..services.errors import ServiceError
from ..validation import ValidationError, get_json_object, parse_date, parse_int, require_fields


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_feature("accounting")
def list_expenses_route():
    """Query params: category, start, end (YYYY-MM-DD, inclusive)."""
    try:
        expenses = expense_service.list_expenses(
            category=request.args.get("category"),
            start=parse_date(request.args.get("start"), "start"),
            end=parse_date(request.args.get("end"), "end"),
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR", "details": {}}), 400
    return jsonify({
        "expenses": [expense.to_dict() for expense in expenses],
        "total_cents": sum(expense.amount_cents for expense in expenses),
    }), 200


@expenses_bp.post("")
@require_auth
@require_feature("accounting")
def create_expense_route():
    """
    Request body:
    {
        "description": str,
        "amount_cents": int,
        "category": str (optional, default "Other"),
        "date": "YYYY-MM-DD" (optional, default today)
    }
    """
    try:
        payload = get_json_object()
        require_fields(payload, "description", "amount_cents")
        expense = expense_service.create_expense(
            description=payload["description"],
            amount_cents=parse_int(payload["amount_cents"], "amount_cents", minimum=1),
            category=payload.get("category") or "Other",
            expense_date=parse_date(payload.get("date"), "date"),
            actor=g.current_user,
        )
        return jsonify({"expense": expense.to_dict()}), 201
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@require_feature("accounting")
def update_expense_route(expense_id: int):
    """
    Correct an expense.

    Request body (all optional): description, amount_cents, category, date
    """
    try:
        payload = get_json_object()
        fields = dict(payload)
        if "amount_cents" in fields:
            fields["amount_cents"] = parse_int(fields["amount_cents"], "amount_cents", minimum=1)
        if "date" in fields:
            fields["date"] = parse_date(fields["date"], "date")
            if fields["date"] is None:
                raise ValidationError("date must not be empty")
        expense = expense_service.update_expense(expense_id, fields, actor=g.current_user)
        return jsonify({"expense": expense.to_dict()}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_feature("accounting")
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id, actor=g.current_user)
        return jsonify({"deleted": expense_id}), 200
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
