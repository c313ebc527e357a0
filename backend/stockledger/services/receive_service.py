# Overview: Receiving processor; scanned batches and supplier deliveries into stock.

"""
Receiving Service

Two intake paths, both ending in Receipt history entries:

- Scanned batches: the caller builds a batch by scanning barcodes
  (resolve_scan) and toggling unit/box per line, then finalizes it with
  receive_batch. A box line adds quantity * box_quantity units.
- Incoming supplier deliveries: a manifest of expected quantities created
  ahead of time; receive_incoming books expected - broken per item.

Every line is validated before any stock changes, so a bad line rejects
the whole batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..time_utils import now_second
from ..models import (
    IncomingDelivery,
    IncomingItem,
    IncomingStatus,
    Product,
    StockChangeReason,
    StockHistoryEntry,
    StockLocation,
    LogType,
    LogSeverity,
    User,
)
from .audit_service import add_log
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .errors import (
    DeliveryStateError,
    EmptyBatchError,
    InvalidQuantityError,
    NotFoundError,
    ProductNotFoundError,
)
from .stock_service import (
    apply_change,
    find_by_barcode,
    get_product,
    get_products,
    require_int,
    require_positive_int,
)


@dataclass(frozen=True)
class ReceiveLine:
    product_id: int
    quantity: int
    is_box: bool = False

    @classmethod
    def from_payload(cls, data) -> "ReceiveLine":
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise InvalidQuantityError("Receiving lines must be objects")
        product_id = data.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ProductNotFoundError("product_id must be an integer", details={"product_id": product_id})
        is_box = data.get("is_box")
        if is_box is None:
            is_box = False
        if not isinstance(is_box, bool):
            raise InvalidQuantityError(
                "is_box must be true or false",
                details={"product_id": product_id, "is_box": is_box},
            )
        return cls(product_id=product_id, quantity=data.get("quantity"), is_box=is_box)


def units_for(line: ReceiveLine, product: Product) -> int:
    """Units added to stock: quantity, or quantity * box_quantity for box lines."""
    return line.quantity * product.box_quantity if line.is_box else line.quantity


def resolve_scan(barcode: str, location: StockLocation | str | None = None,
                 actor: User | None = None) -> Product:
    """
    Resolve a scanned barcode to a product for the batch being built.

    Unknown barcodes raise ProductNotFoundError; the caller reports it and
    does not add the line.
    """
    product = find_by_barcode(barcode, location)
    add_log(LogType.SCAN, product.barcode, f"Scanned {product.name} ({product.location.value}).", actor=actor)
    db.session.commit()
    return product


def receive_batch(lines, actor: User | None = None) -> list[StockHistoryEntry]:
    """
    Finalize a receiving batch.

    One Receipt history entry per line and one INVENTORY_ADJ audit entry
    for the whole batch. Raises EmptyBatchError for an empty batch.
    """
    batch = [ReceiveLine.from_payload(line) for line in (lines or [])]
    if not batch:
        raise EmptyBatchError("Receiving batch is empty")
    for line in batch:
        require_positive_int(line.quantity, "quantity")

    def _op():
        products = get_products([line.product_id for line in batch], lock=True)

        entries = []
        for line in batch:
            product = products[line.product_id]
            entries.append(
                apply_change(product, units_for(line, product), StockChangeReason.RECEIPT, actor)
            )

        add_log(
            LogType.INVENTORY_ADJ,
            "BULK_RECEIVE",
            f"Received {len(batch)} product lines via barcode scan.",
            LogSeverity.SUCCESS,
            actor=actor,
        )
        db.session.commit()
        return entries

    return run_with_retry(_op)


def create_incoming(
    *,
    supplier: str,
    items,
    actor: User | None = None,
    expected_date: date | None = None,
    driver_name: str | None = None,
) -> IncomingDelivery:
    supplier = (supplier or "").strip()
    if not supplier:
        raise InvalidQuantityError("supplier is required")
    if not items:
        raise EmptyBatchError("Incoming delivery has no items")

    # One row per product; repeated lines add up.
    expected_by_product: dict[int, int] = {}
    for item in items:
        product_id = require_positive_int(item.get("product_id"), "product_id")
        expected = require_positive_int(item.get("expected_qty"), "expected_qty")
        expected_by_product[product_id] = expected_by_product.get(product_id, 0) + expected

    def _op():
        rows = []
        for product_id, expected in expected_by_product.items():
            product = get_product(product_id)
            rows.append(IncomingItem(product_id=product.id, name=product.name, expected_qty=expected))

        incoming = IncomingDelivery(
            document_number=next_document_number(document_type="INCOMING", prefix="INC"),
            supplier=supplier,
            expected_date=expected_date,
            driver_name=driver_name,
            status=IncomingStatus.EXPECTED,
            items=rows,
        )
        db.session.add(incoming)
        db.session.flush()

        add_log(
            LogType.CREATE,
            incoming.document_number,
            f"Incoming delivery from {supplier} expected ({len(rows)} lines).",
            actor=actor,
        )
        db.session.commit()
        return incoming

    return run_with_retry(_op)


def get_incoming(incoming_id: int) -> IncomingDelivery:
    incoming = db.session.get(IncomingDelivery, incoming_id)
    if incoming is None:
        raise NotFoundError(f"Incoming delivery {incoming_id} not found")
    return incoming


def list_incoming(status: IncomingStatus | str | None = None) -> list[IncomingDelivery]:
    q = db.session.query(IncomingDelivery)
    if status:
        q = q.filter(IncomingDelivery.status == IncomingStatus(status))
    return q.order_by(IncomingDelivery.id.desc()).all()


def receive_incoming(
    incoming_id: int,
    broken: dict[int, int] | None = None,
    actor: User | None = None,
) -> IncomingDelivery:
    """
    Book an expected supplier delivery into stock.

    broken maps product_id -> damaged units; each item adds
    expected_qty - broken_qty units as a Receipt referencing the incoming
    document. Status becomes Partially Broken when anything was damaged.
    """
    try:
        broken = {int(k): v for k, v in (broken or {}).items()}
    except (TypeError, ValueError):
        raise InvalidQuantityError("broken must map product ids to quantities", details={"broken": broken})

    def _op():
        incoming = lock_for_update(
            db.session.query(IncomingDelivery).filter_by(id=incoming_id)
        ).first()
        if incoming is None:
            raise NotFoundError(f"Incoming delivery {incoming_id} not found")
        if incoming.status != IncomingStatus.EXPECTED:
            raise DeliveryStateError(
                f"Incoming delivery {incoming.document_number} already {incoming.status.value}"
            )

        unknown = set(broken) - {item.product_id for item in incoming.items}
        if unknown:
            raise ProductNotFoundError(
                "Broken quantities given for products not on this delivery",
                details={"product_ids": sorted(unknown)},
            )

        for item in incoming.items:
            damaged = require_int(broken.get(item.product_id, 0), "broken_qty")
            if damaged < 0 or damaged > item.expected_qty:
                raise InvalidQuantityError(
                    "broken_qty must be between 0 and the expected quantity",
                    details={"product_id": item.product_id, "broken_qty": damaged},
                )
            item.broken_qty = damaged

        products = get_products([item.product_id for item in incoming.items], lock=True)
        for item in incoming.items:
            accepted = item.expected_qty - item.broken_qty
            if accepted:
                apply_change(
                    products[item.product_id],
                    accepted,
                    StockChangeReason.RECEIPT,
                    actor,
                    reference_id=incoming.document_number,
                )

        any_broken = any(item.broken_qty for item in incoming.items)
        incoming.status = IncomingStatus.PARTIALLY_BROKEN if any_broken else IncomingStatus.RECEIVED
        incoming.received_at = now_second()
        incoming.received_by_user_id = actor.id if actor else None

        add_log(
            LogType.INVENTORY_ADJ,
            incoming.document_number,
            f"Received delivery from {incoming.supplier}: {incoming.status.value}.",
            LogSeverity.WARNING if any_broken else LogSeverity.SUCCESS,
            actor=actor,
        )
        db.session.commit()
        return incoming

    return run_with_retry(_op)


