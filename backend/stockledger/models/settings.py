from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, now_second


DEFAULT_PAYMENT_METHODS = ["Ecocash (Mobile)", "Card", "USD Cash", "ZWL Cash"]


class SystemConfig(db.Model):
    """
    Business configuration read by the ledger processors.

    Single row (id=1). tax_rate_bps is basis points: 1500 = 15%.
    payment_methods is an ordered list; the first entry is the fallback
    used when checkout names a method that is not configured.
    """
    __tablename__ = "system_config"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(120), nullable=False, default="My Local Hardware")
    currency = db.Column(db.String(3), nullable=False, default="USD")
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=1500)
    ai_enabled = db.Column(db.Boolean, nullable=False, default=True)
    payment_methods = db.Column(db.JSON, nullable=False, default=lambda: list(DEFAULT_PAYMENT_METHODS))

    updated_at = db.Column(db.DateTime, nullable=False, default=now_second, onupdate=now_second)

    def to_dict(self) -> dict:
        return {
            "store_name": self.store_name,
            "currency": self.currency,
            "low_stock_threshold": self.low_stock_threshold,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_rate": self.tax_rate_bps / 100,
            "ai_enabled": self.ai_enabled,
            "payment_methods": list(self.payment_methods or []),
            "updated_at": to_utc_z(self.updated_at),
        }


class Branch(db.Model):
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_branches_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_second)

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """Per document type counter for human-readable numbers (S-000001, TRF-0001)."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "document_type": self.document_type,
            "next_number": self.next_number,
        }
