# Overview: Stock ledger; the single point through which product quantities change.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    Product,
    StockHistoryEntry,
    StockChangeReason,
    StockLocation,
    LogType,
    LogSeverity,
    User,
)
from .audit_service import add_log, actor_fields
from .concurrency import lock_for_update, run_with_retry
from .errors import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    StockError,
)
"""
Stock Ledger Invariants (authoritative)

Stock model:
- Product.stock is the on-hand count for one product row (one location).
- Every change goes through apply_change(), which writes exactly one
  StockHistoryEntry in the same transaction.
- history[0].new_stock == product.stock after every change, and
  product.stock == (stock before first retained entry) + sum(change_amount).

Business invariants:
- Stock may never go negative; a change that would do so is rejected
  before anything is written.
- History is newest first and capped at HISTORY_LIMIT entries per product;
  the oldest entries are dropped first.
- apply_change() never commits. Processors (sales, receiving, transfers)
  validate every line first, then apply all changes, then commit once.
"""

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100

CATALOGUE_FIELDS = {
    "name",
    "category",
    "price_cents",
    "cost_cents",
    "sku",
    "barcode",
    "box_quantity",
    "branch_id",
}


def require_int(value, field: str = "quantity") -> int:
    """Strict integer check: rejects bools, floats and numeric strings."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(f"{field} must be an integer", details={field: value})
    return value


def require_positive_int(value, field: str = "quantity") -> int:
    value = require_int(value, field)
    if value <= 0:
        raise InvalidQuantityError(f"{field} must be positive", details={field: value})
    return value


def get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFoundError(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )
    return product


def get_products(product_ids, *, lock: bool = False) -> dict[int, Product]:
    """Load (and optionally lock) several products in id order to avoid lock-order deadlocks."""
    return {pid: get_product(pid, lock=lock) for pid in sorted(set(product_ids))}


def get_stock(product_id: int) -> int:
    return get_product(product_id).stock


def list_history(product_id: int, limit: int = HISTORY_LIMIT) -> list[StockHistoryEntry]:
    """Stock history for a product, newest first."""
    get_product(product_id)
    return (
        db.session.query(StockHistoryEntry)
        .filter_by(product_id=product_id)
        .order_by(StockHistoryEntry.id.desc())
        .limit(limit)
        .all()
    )


def _trim_history(product_id: int) -> int:
    stale_ids = [
        row.id
        for row in db.session.query(StockHistoryEntry.id)
        .filter_by(product_id=product_id)
        .order_by(StockHistoryEntry.id.desc())
        .offset(HISTORY_LIMIT)
        .all()
    ]
    if not stale_ids:
        return 0
    return (
        db.session.query(StockHistoryEntry)
        .filter(StockHistoryEntry.id.in_(stale_ids))
        .delete(synchronize_session=False)
    )


def apply_change(
    product: Product,
    delta: int,
    reason: StockChangeReason | str,
    actor: User | None = None,
    reference_id: str | None = None,
) -> StockHistoryEntry:
    """
    Apply a signed quantity change to one product and record it.

    Raises InsufficientStockError (and changes nothing) if the result would
    be negative. Does not commit.
    """
    delta = require_int(delta, "change_amount")
    reason = StockChangeReason(reason)

    new_stock = product.stock + delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}",
            details={
                "items": [{
                    "product_id": product.id,
                    "name": product.name,
                    "requested_quantity": -delta,
                    "on_hand": product.stock,
                }],
            },
        )

    user_id, user_name = actor_fields(actor)

    product.stock = new_stock
    entry = StockHistoryEntry(
        product_id=product.id,
        change_amount=delta,
        new_stock=new_stock,
        reason=reason,
        reference_id=reference_id,
        user_id=user_id,
        user_name=user_name,
    )
    db.session.add(entry)
    db.session.flush()

    _trim_history(product.id)
    db.session.expire(product, ["history"])

    logger.debug(
        "stock change product=%s reason=%s delta=%+d new_stock=%d ref=%s",
        product.id, reason.value, delta, new_stock, reference_id,
    )
    return entry


def check_availability(products: dict[int, Product], requested: dict[int, int]) -> None:
    """
    Validate summed requested quantities against live stock.

    Raises one InsufficientStockError listing every short product so the
    caller can reject the whole operation before applying any line.
    """
    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "on_hand": product.stock,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock for one or more lines",
            details={"items": insufficient},
        )


def _clean_catalogue_fields(fields: dict) -> dict:
    cleaned = {}
    if "name" in fields:
        name = str(fields["name"] or "").strip()
        if not name:
            raise StockError("Product name is required")
        cleaned["name"] = name
    if "category" in fields:
        cleaned["category"] = str(fields["category"] or "").strip() or "Hardware"
    for money_field in ("price_cents", "cost_cents"):
        if money_field in fields:
            value = fields[money_field]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise StockError(f"{money_field} must be a non-negative integer")
            cleaned[money_field] = value
    for text_field in ("sku", "barcode"):
        if text_field in fields:
            cleaned[text_field] = str(fields[text_field] or "").strip()
    if "box_quantity" in fields:
        cleaned["box_quantity"] = require_positive_int(fields["box_quantity"], "box_quantity")
    if "branch_id" in fields:
        cleaned["branch_id"] = fields["branch_id"]
    return cleaned


def create_product_row(
    *,
    name: str,
    location: StockLocation | str,
    stock: int = 0,
    actor: User | None = None,
    **fields,
) -> Product:
    """Create a product and its Initial history entry without committing."""
    stock = require_int(stock, "stock")
    if stock < 0:
        raise InvalidQuantityError("Initial stock cannot be negative", details={"stock": stock})

    try:
        location = StockLocation(location)
    except ValueError:
        raise StockError(f"Unknown location {location!r}")

    cleaned = _clean_catalogue_fields({"name": name, **fields})
    product = Product(location=location, stock=0, **cleaned)
    db.session.add(product)
    db.session.flush()

    apply_change(product, stock, StockChangeReason.INITIAL, actor)
    return product


def register_product(
    *,
    name: str,
    location: StockLocation | str = StockLocation.SHOP,
    stock: int = 0,
    actor: User | None = None,
    **fields,
) -> Product:
    """
    Catalogue a new product row.

    The initial stock produces exactly one Initial history entry.
    """
    unknown = set(fields) - CATALOGUE_FIELDS
    if unknown:
        raise StockError(f"Unknown product fields: {', '.join(sorted(unknown))}")

    def _op():
        product = create_product_row(name=name, location=location, stock=stock, actor=actor, **fields)
        add_log(
            LogType.CREATE,
            product.sku or product.name,
            f"New product {product.name} catalogued.",
            LogSeverity.SUCCESS,
            actor=actor,
        )
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, fields: dict, actor: User | None = None) -> Product:
    """Edit catalogue fields. Stock and location are not editable here."""
    blocked = set(fields) & {"stock", "location", "history"}
    if blocked:
        raise StockError(
            f"Cannot edit {', '.join(sorted(blocked))} directly; use stock adjustments"
        )
    unknown = set(fields) - CATALOGUE_FIELDS
    if unknown:
        raise StockError(f"Unknown product fields: {', '.join(sorted(unknown))}")

    cleaned = _clean_catalogue_fields(fields)

    def _op():
        product = get_product(product_id, lock=True)
        for key, value in cleaned.items():
            setattr(product, key, value)
        add_log(
            LogType.UPDATE,
            product.sku or product.name,
            f"Product {product.name} updated.",
            actor=actor,
        )
        db.session.commit()
        return product

    return run_with_retry(_op)


def adjust_stock(
    product_id: int,
    new_stock: int,
    actor: User | None = None,
    reference_id: str | None = None,
) -> StockHistoryEntry | None:
    """
    Manual correction to an absolute count.

    Records an Adjustment entry with the delta. A zero delta records
    nothing and returns None.
    """
    new_stock = require_int(new_stock, "stock")
    if new_stock < 0:
        raise InvalidQuantityError("Stock cannot be negative", details={"stock": new_stock})

    def _op():
        product = get_product(product_id, lock=True)
        old_stock = product.stock
        delta = new_stock - old_stock
        if delta == 0:
            return None

        entry = apply_change(product, delta, StockChangeReason.ADJUSTMENT, actor, reference_id)
        add_log(
            LogType.UPDATE,
            product.sku or product.name,
            f"Stock adjusted manually for {product.name}: {old_stock} -> {new_stock}",
            LogSeverity.WARNING,
            actor=actor,
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def list_products(
    *,
    location: StockLocation | str | None = None,
    category: str | None = None,
    search: str | None = None,
    low_stock_only: bool = False,
    low_stock_threshold: int | None = None,
    branch_id: int | None = None,
) -> list[Product]:
    """
    Filter the catalogue.

    search matches name and SKU case-insensitively, barcode by substring.
    low_stock_only keeps rows with stock strictly below the threshold.
    """
    q = db.session.query(Product)
    if location:
        q = q.filter(Product.location == StockLocation(location))
    if category and category != "All":
        q = q.filter(Product.category == category)
    if branch_id is not None:
        q = q.filter(Product.branch_id == branch_id)
    if search:
        term = search.strip()
        q = q.filter(
            or_(
                Product.name.ilike(f"%{term}%"),
                Product.sku.ilike(f"%{term}%"),
                Product.barcode.contains(term, autoescape=True),
            )
        )
    if low_stock_only:
        if low_stock_threshold is None:
            from .settings_service import get_config
            low_stock_threshold = get_config().low_stock_threshold
        q = q.filter(Product.stock < low_stock_threshold)
    return q.order_by(Product.id).all()


def find_by_barcode(barcode: str, location: StockLocation | str | None = None) -> Product:
    """First product (by id) whose barcode matches exactly."""
    code = (barcode or "").strip()
    if not code:
        raise ProductNotFoundError("Barcode is required", details={"barcode": barcode})

    q = db.session.query(Product).filter(Product.barcode == code)
    if location:
        q = q.filter(Product.location == StockLocation(location))
    product = q.order_by(Product.id).first()
    if product is None:
        raise ProductNotFoundError(
            "Product with this barcode not found in system. Register it in Inventory first.",
            details={"barcode": code},
        )
    return product
