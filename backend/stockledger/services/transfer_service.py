# Overview: Transfer processor; warehouse-to-branch stock manifests and outgoing deliveries.
"""
Transfer Service

LIFECYCLE (both delivery types):
Pending -> Picked Up -> Out for Delivery -> Delivered

TRANSFER CUSTODY:
1. create_transfer: the source warehouse rows are decremented immediately
   (Transfer history entries referencing the TRF- number). Stock in transit
   is therefore on no shelf.
2. receive_transfer: the destination branch's Shop row with the same SKU is
   incremented (created with an Initial 0 entry when the branch has never
   stocked it). Happens at most once per transfer.

Customer deliveries carry goods that were already depleted by the sale, so
they never touch stock.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    Branch,
    Delivery,
    DeliveryItem,
    DeliveryStatus,
    DeliveryTimelineEntry,
    DeliveryType,
    DELIVERY_STATUS_ORDER,
    LogSeverity,
    LogType,
    Product,
    Sale,
    StockChangeReason,
    StockLocation,
    User,
)
from ..time_utils import now_second
from .audit_service import add_log
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .errors import (
    DeliveryStateError,
    EmptyBatchError,
    InvalidQuantityError,
    LocationMismatchError,
    NotFoundError,
    ProductNotFoundError,
)
from .stock_service import (
    apply_change,
    check_availability,
    create_product_row,
    get_products,
    require_positive_int,
)

logger = logging.getLogger(__name__)

WAREHOUSE_ORIGIN = "Main Warehouse"
TIMELINE_AUTHORIZED = "Transfer Authorized"
TIMELINE_RECEIVED = "Received at Branch"


def _normalize_lines(lines) -> dict[int, int]:
    """Sum quantities per product_id, validating every line first."""
    requested: dict[int, int] = {}
    for line in lines or []:
        if not isinstance(line, dict):
            raise InvalidQuantityError("Transfer lines must be objects")
        product_id = line.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ProductNotFoundError("product_id must be an integer", details={"product_id": product_id})
        quantity = require_positive_int(line.get("quantity"), "quantity")
        requested[product_id] = requested.get(product_id, 0) + quantity
    return requested


def _get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError(f"Branch {branch_id} not found", details={"branch_id": branch_id})
    return branch


def _lock_delivery(delivery_id: int) -> Delivery:
    delivery = lock_for_update(db.session.query(Delivery).filter_by(id=delivery_id)).first()
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found", details={"delivery_id": delivery_id})
    return delivery


def create_transfer(
    destination_branch_id: int,
    lines,
    actor: User | None = None,
    driver_id: int | None = None,
) -> Delivery:
    """
    Authorize a warehouse-to-branch transfer.

    Every line must name a Warehouse row with enough stock; any failure
    rejects the whole manifest and changes nothing.

    Raises:
        EmptyBatchError, InvalidQuantityError, ProductNotFoundError,
        LocationMismatchError, InsufficientStockError, NotFoundError
    """
    requested = _normalize_lines(lines)
    if not requested:
        raise EmptyBatchError("Transfer has no lines")

    def _op():
        branch = _get_branch(destination_branch_id)
        products = get_products(requested, lock=True)

        misplaced = [p for p in products.values() if p.location != StockLocation.WAREHOUSE]
        if misplaced:
            raise LocationMismatchError(
                "Only warehouse stock can be transferred",
                details={"product_ids": [p.id for p in misplaced]},
            )

        check_availability(products, requested)

        document_number = next_document_number(document_type="TRANSFER", prefix="TRF")
        delivery = Delivery(
            document_number=document_number,
            type=DeliveryType.TRANSFER,
            status=DeliveryStatus.PENDING,
            origin=WAREHOUSE_ORIGIN,
            destination=branch.name,
            destination_branch_id=branch.id,
            driver_id=driver_id,
            created_by_user_id=actor.id if actor else None,
            items=[
                DeliveryItem(
                    product_id=product.id,
                    name=product.name,
                    sku=product.sku,
                    quantity=requested[product.id],
                    unit_price_cents=product.price_cents,
                    unit_cost_cents=product.cost_cents,
                )
                for product in products.values()
            ],
            timeline=[DeliveryTimelineEntry(status=TIMELINE_AUTHORIZED)],
        )
        db.session.add(delivery)
        db.session.flush()

        for product in products.values():
            apply_change(
                product,
                -requested[product.id],
                StockChangeReason.TRANSFER,
                actor,
                reference_id=document_number,
            )

        add_log(
            LogType.TRANSFER,
            document_number,
            f"Stock transfer initiated to {branch.name}.",
            actor=actor,
        )
        db.session.commit()
        logger.info("transfer %s created for branch %s (%d lines)", document_number, branch.id, len(requested))
        return delivery

    return run_with_retry(_op)


def _destination_row(item: DeliveryItem, branch_id: int | None, actor: User | None) -> Product:
    """The destination branch's Shop row for an item, created empty when missing."""
    q = db.session.query(Product).filter(
        Product.location == StockLocation.SHOP,
        Product.branch_id == branch_id,
    )
    if item.sku:
        q = q.filter(Product.sku == item.sku)
    else:
        q = q.filter(Product.name == item.name)
    existing = q.order_by(Product.id).first()
    if existing is not None:
        return lock_for_update(db.session.query(Product).filter_by(id=existing.id)).first()

    source = db.session.get(Product, item.product_id)
    return create_product_row(
        name=item.name,
        location=StockLocation.SHOP,
        stock=0,
        actor=actor,
        category=source.category if source else "Hardware",
        price_cents=item.unit_price_cents,
        cost_cents=item.unit_cost_cents,
        sku=item.sku,
        barcode=source.barcode if source else "",
        box_quantity=source.box_quantity if source else 1,
        branch_id=branch_id,
    )


def _receive(delivery: Delivery, actor: User | None, note: str | None = None) -> None:
    if delivery.type != DeliveryType.TRANSFER:
        raise DeliveryStateError(
            f"{delivery.document_number} is not a transfer",
            details={"delivery_id": delivery.id, "type": delivery.type.value},
        )
    if delivery.received_at is not None:
        raise DeliveryStateError(
            f"Transfer {delivery.document_number} was already received",
            details={"delivery_id": delivery.id},
        )

    for item in delivery.items:
        row = _destination_row(item, delivery.destination_branch_id, actor)
        apply_change(
            row,
            item.quantity,
            StockChangeReason.TRANSFER,
            actor,
            reference_id=delivery.document_number,
        )

    delivery.status = DeliveryStatus.DELIVERED
    delivery.received_at = now_second()
    delivery.received_by_user_id = actor.id if actor else None
    delivery.timeline.append(DeliveryTimelineEntry(status=TIMELINE_RECEIVED, note=note))

    add_log(
        LogType.TRANSFER,
        delivery.document_number,
        f"Stock transfer received at {delivery.destination}.",
        LogSeverity.SUCCESS,
        actor=actor,
    )


def receive_transfer(delivery_id: int, actor: User | None = None, note: str | None = None) -> Delivery:
    """
    Book a transfer into the destination branch's shop stock.

    Raises DeliveryStateError for customer deliveries or transfers that
    were already received.
    """
    def _op():
        delivery = _lock_delivery(delivery_id)
        _receive(delivery, actor, note)
        db.session.commit()
        return delivery

    return run_with_retry(_op)


def advance_status(
    delivery_id: int,
    status: DeliveryStatus | str,
    actor: User | None = None,
    note: str | None = None,
) -> Delivery:
    """
    Move a delivery forward along the lifecycle.

    Moving a transfer to Delivered receives it. Backward or repeated
    transitions raise DeliveryStateError.
    """
    try:
        target = DeliveryStatus(status)
    except ValueError:
        raise DeliveryStateError(f"Unknown delivery status {status!r}", details={"status": status})

    def _op():
        delivery = _lock_delivery(delivery_id)
        current_index = DELIVERY_STATUS_ORDER.index(delivery.status)
        target_index = DELIVERY_STATUS_ORDER.index(target)
        if target_index <= current_index:
            raise DeliveryStateError(
                f"Cannot move {delivery.document_number} from {delivery.status.value} to {target.value}",
                details={"from": delivery.status.value, "to": target.value},
            )

        if target == DeliveryStatus.DELIVERED and delivery.type == DeliveryType.TRANSFER:
            _receive(delivery, actor, note)
        else:
            delivery.status = target
            delivery.timeline.append(DeliveryTimelineEntry(status=target.value, note=note))
            add_log(
                LogType.TRANSFER if delivery.type == DeliveryType.TRANSFER else LogType.UPDATE,
                delivery.document_number,
                f"Delivery status changed to {target.value}.",
                LogSeverity.SUCCESS if target == DeliveryStatus.DELIVERED else LogSeverity.INFO,
                actor=actor,
            )

        db.session.commit()
        return delivery

    return run_with_retry(_op)


def create_customer_delivery(
    sale_id: int,
    destination: str,
    actor: User | None = None,
    driver_id: int | None = None,
) -> Delivery:
    """Schedule delivery of a completed sale. Stock was already depleted at checkout."""
    destination = (destination or "").strip()
    if not destination:
        raise InvalidQuantityError("destination is required")

    def _op():
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})

        document_number = next_document_number(document_type="DELIVERY", prefix="DEL")
        delivery = Delivery(
            document_number=document_number,
            type=DeliveryType.CUSTOMER,
            status=DeliveryStatus.PENDING,
            sale_id=sale.id,
            origin=WAREHOUSE_ORIGIN,
            destination=destination,
            driver_id=driver_id,
            created_by_user_id=actor.id if actor else None,
            items=[
                DeliveryItem(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    unit_cost_cents=item.unit_cost_cents,
                )
                for item in sale.items
            ],
            timeline=[DeliveryTimelineEntry(status="Order Placed", note=sale.document_number)],
        )
        db.session.add(delivery)
        db.session.flush()

        add_log(
            LogType.CREATE,
            document_number,
            f"Delivery scheduled for {sale.document_number} to {destination}.",
            actor=actor,
        )
        db.session.commit()
        return delivery

    return run_with_retry(_op)


def get_delivery(delivery_id: int) -> Delivery:
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found", details={"delivery_id": delivery_id})
    return delivery


def list_deliveries(
    *,
    delivery_type: DeliveryType | str | None = None,
    status: DeliveryStatus | str | None = None,
    driver_id: int | None = None,
) -> list[Delivery]:
    q = db.session.query(Delivery)
    if delivery_type:
        q = q.filter(Delivery.type == DeliveryType(delivery_type))
    if status:
        q = q.filter(Delivery.status == DeliveryStatus(status))
    if driver_id is not None:
        q = q.filter(Delivery.driver_id == driver_id)
    return q.order_by(Delivery.id.desc()).all()
