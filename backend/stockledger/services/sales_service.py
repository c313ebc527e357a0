"""
Sales Service - point-of-sale checkout

Checkout is a single validate-then-apply step:

1. Lock every product in the cart (id order).
2. Sum requested quantities per product and compare against LIVE stock.
   Any shortfall rejects the whole sale; nothing is written.
3. Allocate the document number, write the Sale, apply one Sale history
   entry per line, append one TRANSACTION audit entry, commit once.

Prices/costs default to the product's current values and are snapshotted
on the sale lines.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Sale, SaleItem, StockChangeReason, StockLocation, LogType, LogSeverity, User
from ..money import apply_rate_bps, format_cents
from . import settings_service
from .audit_service import add_log
from .concurrency import run_with_retry
from .document_service import next_document_number
from .errors import (
    EmptyBatchError,
    InsufficientStockError,
    InvalidQuantityError,
    LocationMismatchError,
    NotFoundError,
    ProductNotFoundError,
)
from .stock_service import apply_change, check_availability, get_products, get_product, require_positive_int


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    price_cents: int | None = None
    cost_cents: int | None = None

    @classmethod
    def from_payload(cls, data) -> "CartLine":
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise InvalidQuantityError("Cart lines must be objects")
        product_id = data.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ProductNotFoundError("product_id must be an integer", details={"product_id": product_id})
        return cls(
            product_id=product_id,
            quantity=data.get("quantity"),
            price_cents=data.get("price_cents"),
            cost_cents=data.get("cost_cents"),
        )


def _normalize_cart(lines) -> list[CartLine]:
    cart = [CartLine.from_payload(line) for line in (lines or [])]
    for line in cart:
        require_positive_int(line.quantity, "quantity")
        for money_field in ("price_cents", "cost_cents"):
            value = getattr(line, money_field)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise InvalidQuantityError(
                    f"{money_field} must be a non-negative integer",
                    details={"product_id": line.product_id, money_field: value},
                )
    return cart


def compute_totals(line_totals: list[int], tax_rate_bps: int) -> tuple[int, int, int]:
    """(subtotal, tax, total) in cents; tax is rounded half-up to the cent."""
    subtotal = sum(line_totals)
    tax = apply_rate_bps(subtotal, tax_rate_bps)
    return subtotal, tax, subtotal + tax


def validate_cart_line(product_id: int, quantity: int, existing_quantity: int = 0) -> None:
    """
    Add-to-cart check for POS callers.

    Raises InsufficientStockError when the product is out of stock or the
    cart would exceed the stock currently on hand.
    """
    require_positive_int(quantity, "quantity")
    product = get_product(product_id)
    if product.location != StockLocation.SHOP:
        raise LocationMismatchError(
            f"{product.name} is not stocked on the shop floor",
            details={"product_id": product.id, "location": product.location.value},
        )
    if product.stock <= 0:
        raise InsufficientStockError(
            "Out of stock!",
            details={"items": [{"product_id": product.id, "requested_quantity": quantity, "on_hand": 0}]},
        )
    if existing_quantity + quantity > product.stock:
        raise InsufficientStockError(
            "Maximum available stock reached.",
            details={"items": [{
                "product_id": product.id,
                "requested_quantity": existing_quantity + quantity,
                "on_hand": product.stock,
            }]},
        )


def checkout(
    lines,
    actor: User | None = None,
    *,
    payment_method: str | None = None,
    tax_rate_bps: int | None = None,
) -> Sale:
    """
    Commit a cart as a Sale and deplete stock for every line.

    Raises EmptyBatchError for an empty cart, ProductNotFoundError,
    InvalidQuantityError, LocationMismatchError (non-Shop rows) or
    InsufficientStockError. Any error leaves stock and sales untouched.
    """
    cart = _normalize_cart(lines)
    if not cart:
        raise EmptyBatchError("Cart is empty")

    requested: dict[int, int] = {}
    for line in cart:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    def _op():
        config = settings_service.get_config()
        method = settings_service.resolve_payment_method(payment_method, config)
        rate_bps = config.tax_rate_bps if tax_rate_bps is None else tax_rate_bps
        if rate_bps < 0:
            raise InvalidQuantityError("tax rate cannot be negative", details={"tax_rate_bps": rate_bps})

        products = get_products(requested, lock=True)

        misplaced = [p for p in products.values() if p.location != StockLocation.SHOP]
        if misplaced:
            raise LocationMismatchError(
                "Only shop floor stock can be sold",
                details={"product_ids": [p.id for p in misplaced]},
            )

        check_availability(products, requested)

        items = []
        for line in cart:
            product = products[line.product_id]
            unit_price = product.price_cents if line.price_cents is None else line.price_cents
            unit_cost = product.cost_cents if line.cost_cents is None else line.cost_cents
            items.append(SaleItem(
                product_id=product.id,
                name=product.name,
                quantity=line.quantity,
                unit_price_cents=unit_price,
                unit_cost_cents=unit_cost,
                line_total_cents=unit_price * line.quantity,
            ))

        subtotal, tax, total = compute_totals([item.line_total_cents for item in items], rate_bps)

        document_number = next_document_number(document_type="SALE", prefix="S", pad=6)
        sale = Sale(
            document_number=document_number,
            subtotal_cents=subtotal,
            tax_rate_bps=rate_bps,
            tax_cents=tax,
            total_cents=total,
            cashier_id=actor.id if actor else None,
            payment_method=method,
            items=items,
        )
        db.session.add(sale)
        db.session.flush()

        for item in items:
            apply_change(
                products[item.product_id],
                -item.quantity,
                StockChangeReason.SALE,
                actor,
                reference_id=document_number,
            )

        add_log(
            LogType.TRANSACTION,
            document_number,
            f"Sale Completed: ${format_cents(total)}",
            LogSeverity.SUCCESS,
            actor=actor,
        )

        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def get_sale_by_number(document_number: str) -> Sale:
    sale = db.session.query(Sale).filter_by(document_number=document_number).first()
    if sale is None:
        raise NotFoundError(f"Sale {document_number} not found")
    return sale


def list_sales(*, cashier_id: int | None = None, limit: int = 200) -> list[Sale]:
    q = db.session.query(Sale)
    if cashier_id is not None:
        q = q.filter(Sale.cashier_id == cashier_id)
    return q.order_by(Sale.id.desc()).limit(limit).all()
