# Overview: Operating expenses recorded alongside sales for the books.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Expense, ExpenseCategory, LogType, LogSeverity, User
from ..money import format_cents
from .audit_service import add_log
from .errors import NotFoundError, ServiceError

UPDATABLE_EXPENSE_FIELDS = frozenset({"description", "amount_cents", "category", "date"})


class ExpenseError(ServiceError):
    code = "INVALID_EXPENSE"


def _clean_description(description) -> str:
    description = (description or "").strip()
    if not description:
        raise ExpenseError("description is required")
    return description


def _clean_amount(amount_cents) -> int:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ExpenseError("amount_cents must be a positive integer", details={"amount_cents": amount_cents})
    return amount_cents


def _clean_category(category) -> ExpenseCategory:
    try:
        return ExpenseCategory(category)
    except ValueError:
        raise ExpenseError(
            f"Unknown expense category {category!r}",
            details={"categories": [c.value for c in ExpenseCategory]},
        )


def create_expense(
    *,
    description: str,
    amount_cents: int,
    category: ExpenseCategory | str = ExpenseCategory.OTHER,
    expense_date: date | None = None,
    actor: User | None = None,
) -> Expense:
    description = _clean_description(description)
    amount_cents = _clean_amount(amount_cents)
    category = _clean_category(category)

    expense = Expense(
        date=expense_date or date.today(),
        description=description,
        amount_cents=amount_cents,
        category=category,
        created_by_user_id=actor.id if actor else None,
    )
    db.session.add(expense)
    db.session.flush()

    add_log(
        LogType.TRANSACTION,
        f"EXP-{expense.id}",
        f"Expense recorded: {description} (${format_cents(amount_cents)}).",
        LogSeverity.WARNING,
        actor=actor,
    )
    db.session.commit()
    return expense


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found")
    return expense


def update_expense(expense_id: int, fields: dict, actor: User | None = None) -> Expense:
    """
    Correct a ledger entry in place.

    All fields are validated before the row changes; a no-op update writes
    no audit entry.
    """
    unknown = set(fields) - UPDATABLE_EXPENSE_FIELDS
    if unknown:
        raise ExpenseError(f"Unknown expense fields: {', '.join(sorted(unknown))}")

    updates = {}
    if "description" in fields:
        updates["description"] = _clean_description(fields["description"])
    if "amount_cents" in fields:
        updates["amount_cents"] = _clean_amount(fields["amount_cents"])
    if "category" in fields:
        updates["category"] = _clean_category(fields["category"])
    if "date" in fields:
        if not isinstance(fields["date"], date):
            raise ExpenseError("date must be a calendar date", details={"date": fields["date"]})
        updates["date"] = fields["date"]

    expense = get_expense(expense_id)
    changed = [attr for attr, value in updates.items() if getattr(expense, attr) != value]
    for attr in changed:
        setattr(expense, attr, updates[attr])

    if changed:
        add_log(
            LogType.UPDATE,
            f"EXP-{expense.id}",
            f"Expense updated ({', '.join(changed)}): {expense.description} "
            f"(${format_cents(expense.amount_cents)}).",
            LogSeverity.WARNING,
            actor=actor,
        )
    db.session.commit()
    return expense


def delete_expense(expense_id: int, actor: User | None = None) -> None:
    expense = get_expense(expense_id)
    add_log(
        LogType.DELETE,
        f"EXP-{expense.id}",
        f"Expense removed: {expense.description} (${format_cents(expense.amount_cents)}).",
        LogSeverity.DANGER,
        actor=actor,
    )
    db.session.delete(expense)
    db.session.commit()


def list_expenses(
    *,
    category: ExpenseCategory | str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Expense]:
    """Newest first; start/end are inclusive dates."""
    q = db.session.query(Expense)
    if category:
        q = q.filter(Expense.category == ExpenseCategory(category))
    if start:
        q = q.filter(Expense.date >= start)
    if end:
        q = q.filter(Expense.date <= end)
    return q.order_by(Expense.date.desc(), Expense.id.desc()).all()


def total_expenses_cents(**filters) -> int:
    return sum(expense.amount_cents for expense in list_expenses(**filters))
