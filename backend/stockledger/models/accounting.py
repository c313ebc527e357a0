from __future__ import annotations

import enum

from ..extensions import db
from stockledger.time_utils import to_utc_z, now_second
from .inventory import enum_column


class ExpenseCategory(str, enum.Enum):
    UTILITY = "Utility"
    SALARY = "Salary"
    MAINTENANCE = "Maintenance"
    RENT = "Rent"
    FUEL = "Fuel"
    TELEPHONE = "Telephone"
    MEALS = "Meals"
    STOCK_PURCHASE = "Stock Purchase"
    OTHER = "Other"


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = enum_column(ExpenseCategory, nullable=False, default=ExpenseCategory.OTHER)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=now_second)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category.value,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
