from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, now_second


class StockLocation(str, enum.Enum):
    SHOP = "Shop"
    WAREHOUSE = "Warehouse"


class StockChangeReason(str, enum.Enum):
    SALE = "Sale"
    RECEIPT = "Receipt"
    ADJUSTMENT = "Adjustment"
    TRANSFER = "Transfer"
    INITIAL = "Initial"


def enum_column(enum_cls, **kwargs):
    """Enum column persisted by value ("Shop", "Sale") rather than member name."""
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            validate_strings=True,
            length=32,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


class Product(db.Model):
    """
    A stock-keeping unit at one location.

    The same catalogue item held on the shop floor and in the warehouse is two
    Product rows sharing name/sku/barcode; stock is tracked per row.

    SKU and barcode are free text and NOT unique. Barcode lookups return the
    first match by id unless a location is given.

    stock is the authoritative on-hand count. It is only changed through
    stock_service.apply_change, which writes a StockHistoryEntry in the same
    transaction and refuses to go below zero.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_sku_location", "sku", "location"),
        db.Index("ix_products_location_category", "location", "category"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("box_quantity >= 1", name="ck_products_box_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Hardware")

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)

    sku = db.Column(db.String(64), nullable=False, default="")
    barcode = db.Column(db.String(64), nullable=False, default="", index=True)
    box_quantity = db.Column(db.Integer, nullable=False, default=1)

    location = enum_column(StockLocation, nullable=False, default=StockLocation.SHOP, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=now_second)
    updated_at = db.Column(db.DateTime, nullable=False, default=now_second, onupdate=now_second)

    branch = db.relationship("Branch", backref=db.backref("products", lazy=True))
    history = db.relationship(
        "StockHistoryEntry",
        back_populates="product",
        order_by="StockHistoryEntry.id.desc()",
        cascade="all, delete-orphan",
        lazy="select",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} location={self.location.value} stock={self.stock}>"

    @property
    def boxes_on_hand(self) -> int:
        return self.stock // self.box_quantity if self.box_quantity else 0

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "sku": self.sku,
            "barcode": self.barcode,
            "box_quantity": self.box_quantity,
            "boxes_on_hand": self.boxes_on_hand,
            "location": self.location.value,
            "branch_id": self.branch_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_history:
            data["history"] = [entry.to_dict() for entry in self.history]
        return data


class StockHistoryEntry(db.Model):
    """
    Immutable record of one stock change.

    new_stock is the product's stock immediately after change_amount was
    applied. Rows are never updated; the oldest rows beyond the per-product
    retention limit are deleted.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_product_id_desc", "product_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=now_second)
    change_amount = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = enum_column(StockChangeReason, nullable=False, index=True)

    # Sale / transfer / incoming document number that caused the change
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(120), nullable=False)

    product = db.relationship("Product", back_populates="history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "timestamp": to_utc_z(self.created_at),
            "change_amount": self.change_amount,
            "new_stock": self.new_stock,
            "reason": self.reason.value,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
        }
