# Overview: Read-only sales, inventory and financial reports over the ledger.

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..money import BPS_DENOMINATOR, apply_rate_bps
from .errors import ServiceError
from .expense_service import total_expenses_cents
from .settings_service import get_config

"""
Report Rules

- Reports never write. Every figure is derived from committed sales,
  products and expenses at the time of the call.
- start/end are inclusive calendar dates compared against the UTC sale
  timestamp; either may be omitted.
- Amounts are integer cents. Ratios are basis points rounded half-up.
- Revenue is pre-tax (sum of sale subtotals). Tax collected is reported
  separately and treated as a liability.
"""

DEFAULT_TOP_PRODUCTS = 5
MAX_TOP_PRODUCTS = 100


class ReportRangeError(ServiceError):
    code = "INVALID_REPORT_RANGE"


def _check_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise ReportRangeError(
            "start must not be after end",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )


def _filter_sales(query, start: date | None, end: date | None):
    if start:
        query = query.filter(Sale.created_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(Sale.created_at < datetime.combine(end + timedelta(days=1), time.min))
    return query


def ratio_bps(part: int, whole: int) -> int:
    """part / whole in basis points; 0 when whole is 0."""
    if not whole:
        return 0
    value = Decimal(part) * BPS_DENOMINATOR / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sales_summary(*, start: date | None = None, end: date | None = None) -> dict:
    """Totals plus one row per calendar day, oldest day first."""
    _check_range(start, end)
    sales = _filter_sales(db.session.query(Sale), start, end).order_by(Sale.created_at, Sale.id).all()

    by_day: dict[date, dict] = {}
    for sale in sales:
        day = sale.created_at.date()
        row = by_day.setdefault(day, {"date": day.isoformat(), "count": 0, "total_cents": 0})
        row["count"] += 1
        row["total_cents"] += sale.total_cents

    total = sum(sale.total_cents for sale in sales)
    count = len(sales)
    return {
        "transactions": count,
        "subtotal_cents": sum(sale.subtotal_cents for sale in sales),
        "tax_cents": sum(sale.tax_cents for sale in sales),
        "total_cents": total,
        "average_sale_cents": (total + count // 2) // count if count else 0,
        "by_day": [by_day[day] for day in sorted(by_day)],
    }


def top_products(
    *,
    limit: int = DEFAULT_TOP_PRODUCTS,
    start: date | None = None,
    end: date | None = None,
) -> list[dict]:
    """Best sellers by revenue; ties go to the higher quantity, then the lower product id."""
    _check_range(start, end)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ReportRangeError("limit must be a positive integer", details={"limit": limit})
    limit = min(limit, MAX_TOP_PRODUCTS)

    revenue = func.sum(SaleItem.line_total_cents)
    quantity = func.sum(SaleItem.quantity)
    q = (
        db.session.query(
            SaleItem.product_id,
            func.max(SaleItem.name).label("name"),
            quantity.label("quantity"),
            revenue.label("revenue_cents"),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .group_by(SaleItem.product_id)
    )
    rows = (
        _filter_sales(q, start, end)
        .order_by(revenue.desc(), quantity.desc(), SaleItem.product_id)
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "quantity": int(row.quantity),
            "revenue_cents": int(row.revenue_cents),
        }
        for row in rows
    ]


def inventory_status(*, low_stock_threshold: int | None = None) -> dict:
    """Stock valuation at cost and retail plus the low-stock list, lowest stock first."""
    if low_stock_threshold is None:
        low_stock_threshold = get_config().low_stock_threshold

    products = db.session.query(Product).order_by(Product.id).all()
    low = sorted(
        (p for p in products if p.stock < low_stock_threshold),
        key=lambda p: (p.stock, p.id),
    )
    return {
        "products": len(products),
        "units": sum(p.stock for p in products),
        "value_at_cost_cents": sum(p.stock * p.cost_cents for p in products),
        "value_at_retail_cents": sum(p.stock * p.price_cents for p in products),
        "low_stock_threshold": low_stock_threshold,
        "low_stock": [
            {"id": p.id, "name": p.name, "sku": p.sku, "location": p.location.value, "stock": p.stock}
            for p in low
        ],
    }


def financial_summary(*, start: date | None = None, end: date | None = None) -> dict:
    """
    Income statement and balance-sheet figures for the period.

    Income statement:
        net_revenue = sum of sale subtotals (pre-tax)
        cogs = sum of unit cost snapshot * quantity over sold lines
        gross_profit = net_revenue - cogs
        operating_profit = gross_profit - expenses dated in the period
        estimated_income_tax = operating_profit * configured tax rate, only when positive
        net_income = operating_profit - estimated_income_tax

    Balance sheet:
        inventory_asset_value = current stock * current cost
        cash_position = sales collected (with tax) - expenses
        liabilities = tax_collected + estimated_income_tax
        equity = cash_position + inventory_asset_value - liabilities
    """
    _check_range(start, end)
    config = get_config()

    sales_q = _filter_sales(
        db.session.query(
            func.coalesce(func.sum(Sale.subtotal_cents), 0),
            func.coalesce(func.sum(Sale.tax_cents), 0),
            func.coalesce(func.sum(Sale.total_cents), 0),
        ),
        start,
        end,
    )
    net_revenue, tax_collected, collected = (int(v) for v in sales_q.one())

    cogs_q = _filter_sales(
        db.session.query(
            func.coalesce(func.sum(SaleItem.unit_cost_cents * SaleItem.quantity), 0)
        ).join(Sale, Sale.id == SaleItem.sale_id),
        start,
        end,
    )
    cogs = int(cogs_q.scalar())

    expenses = total_expenses_cents(start=start, end=end)
    gross_profit = net_revenue - cogs
    operating_profit = gross_profit - expenses
    income_tax = apply_rate_bps(operating_profit, config.tax_rate_bps) if operating_profit > 0 else 0
    net_income = operating_profit - income_tax

    inventory_value = int(
        db.session.query(func.coalesce(func.sum(Product.stock * Product.cost_cents), 0)).scalar()
    )
    cash_position = collected - expenses
    liabilities = tax_collected + income_tax

    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "net_revenue_cents": net_revenue,
        "tax_collected_cents": tax_collected,
        "cogs_cents": cogs,
        "gross_profit_cents": gross_profit,
        "operating_expenses_cents": expenses,
        "operating_profit_cents": operating_profit,
        "estimated_income_tax_cents": income_tax,
        "net_income_cents": net_income,
        "gross_margin_bps": ratio_bps(gross_profit, net_revenue),
        "net_margin_bps": ratio_bps(net_income, net_revenue),
        "inventory_asset_value_cents": inventory_value,
        "cash_position_cents": cash_position,
        "total_assets_cents": cash_position + inventory_value,
        "total_liabilities_cents": liabilities,
        "equity_cents": cash_position + inventory_value - liabilities,
    }
