from __future__ import annotations

from datetime import date
from typing import Any

from flask import request

from .services.errors import ServiceError


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ServiceError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


def get_json_object() -> dict:
    """Request body as a dict; anything else is a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_fields(payload: dict, *fields: str) -> None:
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"missing": missing})


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings; rejects bools, floats, decimals
    and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={field: parsed})
    return parsed


def parse_optional_int(value: Any, field: str, *, minimum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    return parse_int(value, field, minimum=minimum)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_strict_bool(value: Any, field: str) -> bool:
    """
    JSON booleans, or the strings "true"/"false"/"1"/"0".

    Anything else is a 400 rather than a silent truthiness guess.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1"}:
            return True
        if lowered in {"false", "0"}:
            return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{field} must be true or false", details={field: value})


def parse_line_items(
    lines: Any,
    *,
    int_fields: tuple[str, ...] = ("product_id", "quantity"),
    bool_fields: tuple[str, ...] = (),
) -> list[dict]:
    """
    Coerce request line items the same way for every endpoint.

    Integer fields accept ints and plain digit strings (see parse_int);
    range checks stay with the services. Missing or null fields are left
    for the service to report.
    """
    if lines is None:
        return []
    if not isinstance(lines, list):
        raise ValidationError("Line items must be a list")
    parsed = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError("Line items must be objects", details={"line": index})
        cleaned = dict(line)
        for field in int_fields:
            if cleaned.get(field) is not None:
                cleaned[field] = parse_int(cleaned[field], field)
        for field in bool_fields:
            if cleaned.get(field) is not None:
                cleaned[field] = parse_strict_bool(cleaned[field], field)
        parsed.append(cleaned)
    return parsed


def parse_date(value: Any, field: str) -> date | None:
    """ISO date ("2024-05-01"); None / "" -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for money_field in ("price_cents", "cost_cents"):
        if money_field in patch and patch[money_field] is not None:
            amount = parse_int(patch[money_field], money_field, minimum=0)
            if amount > MAX_PRICE_CENTS:
                raise ValidationError(
                    f"{money_field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})"
                )
            patch[money_field] = amount
    if "box_quantity" in patch and patch["box_quantity"] is not None:
        patch["box_quantity"] = parse_int(patch["box_quantity"], "box_quantity", minimum=1)
