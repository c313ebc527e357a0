from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, now_second
from .inventory import enum_column


class DeliveryType(str, enum.Enum):
    CUSTOMER = "Customer"
    TRANSFER = "Transfer"


class DeliveryStatus(str, enum.Enum):
    PENDING = "Pending"
    PICKED_UP = "Picked Up"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"


# Forward-only progression; a delivery never moves back to an earlier status.
DELIVERY_STATUS_ORDER = (
    DeliveryStatus.PENDING,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.OUT_FOR_DELIVERY,
    DeliveryStatus.DELIVERED,
)


class IncomingStatus(str, enum.Enum):
    EXPECTED = "Expected"
    RECEIVED = "Received"
    PARTIALLY_BROKEN = "Partially Broken"


class Delivery(db.Model):
    """
    Outgoing delivery: either a customer order (linked to a sale) or an
    inter-branch transfer manifest.

    LIFECYCLE: Pending -> Picked Up -> Out for Delivery -> Delivered.

    TRANSFER CUSTODY:
    - Creation decrements the source warehouse rows (Transfer history entries).
    - receive_transfer increments the destination branch's Shop rows and
      stamps received_at. A transfer is received at most once.
    """
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_deliveries_document_number"),
        db.Index("ix_deliveries_type_status", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # "TRF-0001" for transfers, "DEL-0001" for customer deliveries
    document_number = db.Column(db.String(64), nullable=False)

    type = enum_column(DeliveryType, nullable=False)
    status = enum_column(DeliveryStatus, nullable=False, default=DeliveryStatus.PENDING)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    origin = db.Column(db.String(255), nullable=False)
    destination = db.Column(db.String(255), nullable=False)
    destination_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    driver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_second)

    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "DeliveryItem",
        back_populates="delivery",
        order_by="DeliveryItem.id",
        cascade="all, delete-orphan",
    )
    timeline = db.relationship(
        "DeliveryTimelineEntry",
        back_populates="delivery",
        order_by="DeliveryTimelineEntry.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "type": self.type.value,
            "status": self.status.value,
            "sale_id": self.sale_id,
            "origin": self.origin,
            "destination": self.destination,
            "destination_branch_id": self.destination_branch_id,
            "driver_id": self.driver_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "received_by_user_id": self.received_by_user_id,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "items": [item.to_dict() for item in self.items],
            "timeline": [entry.to_dict() for entry in self.timeline],
        }


class DeliveryItem(db.Model):
    __tablename__ = "delivery_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    # SKU snapshot; used to find the matching row at the destination branch
    sku = db.Column(db.String(64), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    delivery = db.relationship("Delivery", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
        }


class DeliveryTimelineEntry(db.Model):
    __tablename__ = "delivery_timeline"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    status = db.Column(db.String(64), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_second)

    delivery = db.relationship("Delivery", back_populates="timeline")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "note": self.note,
            "time": to_utc_z(self.created_at),
        }


class IncomingDelivery(db.Model):
    """Supplier delivery expected at the warehouse."""
    __tablename__ = "incoming_deliveries"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_incoming_document_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    supplier = db.Column(db.String(255), nullable=False)
    expected_date = db.Column(db.Date, nullable=True)
    driver_name = db.Column(db.String(120), nullable=True)
    status = enum_column(IncomingStatus, nullable=False, default=IncomingStatus.EXPECTED)

    created_at = db.Column(db.DateTime, nullable=False, default=now_second)
    received_at = db.Column(db.DateTime, nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    items = db.relationship(
        "IncomingItem",
        back_populates="incoming",
        order_by="IncomingItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "supplier": self.supplier,
            "expected_date": self.expected_date.isoformat() if self.expected_date else None,
            "driver_name": self.driver_name,
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "received_by_user_id": self.received_by_user_id,
            "items": [item.to_dict() for item in self.items],
        }


class IncomingItem(db.Model):
    __tablename__ = "incoming_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    incoming_id = db.Column(db.Integer, db.ForeignKey("incoming_deliveries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    expected_qty = db.Column(db.Integer, nullable=False)
    broken_qty = db.Column(db.Integer, nullable=False, default=0)

    incoming = db.relationship("IncomingDelivery", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "expected_qty": self.expected_qty,
            "broken_qty": self.broken_qty,
        }
