# Overview: Pure aggregation helpers over in-memory records (no DB access).

"""
Dashboard and reporting computations.

Every function here is deterministic and side-effect free. Inputs are
duck-typed: anything exposing the attributes of the corresponding model
(ORM rows, dataclasses, SimpleNamespace) works, which keeps these helpers
testable without a database.

Ordering rules:
- Sorting uses Python's stable sort, so ties keep their encounter order.
- Notifications are critical first, then warnings.
"""

from __future__ import annotations

from datetime import date, timedelta, timezone, tzinfo
from typing import Iterable

from .time_utils import first_of_month, to_local_date

STOCK_OK = "ok"
STOCK_LOW = "low"
STOCK_CRITICAL = "critical"

SEVERITY_CRITICAL = "critical"
SEVERITY_WARNING = "warning"

UNKNOWN_PRODUCT_NAME = "Unknown product"

SUMMARY_METHODS = ("cash", "transfer", "credit", "other")


def stock_level(current: int, minimum: int) -> str:
    """
    Classify a stock level against its minimum threshold.

    current <= minimum is low; at or below half the threshold is critical.
    """
    current = current or 0
    minimum = minimum or 0
    if current * 2 <= minimum:
        return STOCK_CRITICAL
    if current <= minimum:
        return STOCK_LOW
    return STOCK_OK


def is_low_stock(product) -> bool:
    return stock_level(product.current_stock, product.minimum_stock) != STOCK_OK


def low_stock_products(products: Iterable, limit: int | None = None) -> list:
    """Active products at or below their minimum, lowest stock first."""
    low = [p for p in products if getattr(p, "is_active", True) and is_low_stock(p)]
    low.sort(key=lambda p: p.current_stock or 0)
    if limit is not None:
        return low[:limit]
    return low


def top_debtors(customers: Iterable, limit: int = 5) -> list:
    """Customers with outstanding debt, largest debt first."""
    debtors = [c for c in customers if (c.total_debt_cents or 0) > 0]
    debtors.sort(key=lambda c: c.total_debt_cents, reverse=True)
    return debtors[:limit]


def _month_key(day: date) -> tuple[int, int]:
    return day.year, day.month


def top_selling_products(
    sales: Iterable,
    products: Iterable,
    month_of: date,
    limit: int = 5,
    tz: tzinfo = timezone.utc,
) -> list[dict]:
    """
    Rank products by quantity sold within the calendar month containing month_of.

    Sale dates are UTC-naive and are bucketed by the shop's local calendar.
    """
    target = _month_key(first_of_month(month_of))
    names = {p.id: p.name for p in products}

    totals: dict[int, int] = {}
    revenue: dict[int, int] = {}
    for sale in sales:
        if _month_key(to_local_date(sale.sale_date, tz)) != target:
            continue
        for item in sale.items:
            # dict preserves first-encounter order for the stable sort below
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
            revenue[item.product_id] = revenue.get(item.product_id, 0) + item.line_total_cents

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {
            "product_id": product_id,
            "product_name": names.get(product_id, UNKNOWN_PRODUCT_NAME),
            "quantity": quantity,
            "revenue_cents": revenue[product_id],
        }
        for product_id, quantity in ranked[:limit]
    ]


def margin_percent(profit: int, sales: int) -> float:
    """Profit as a percentage of sales; 0 when nothing was sold."""
    if not sales:
        return 0.0
    return round(profit * 100.0 / sales, 2)


def _line_cost(item, costs: dict[int, int]) -> int:
    # Cost comes from the product's current cost price; unknown products cost nothing
    return item.quantity * costs.get(item.product_id, 0)


def profit_summary(sales: Iterable, products: Iterable) -> dict:
    """
    Sales, cost and profit totals for a set of sales (caller picks the window).

    Profit per line is line_total - quantity * cost_price. Per-product rows
    are ordered by sales, largest first.
    """
    names = {}
    costs = {}
    for p in products:
        names[p.id] = p.name
        costs[p.id] = p.cost_price_cents or 0

    total_sales = 0
    total_cost = 0
    transactions = 0
    rows: dict[int, dict] = {}
    for sale in sales:
        transactions += 1
        for item in sale.items:
            cost = _line_cost(item, costs)
            total_sales += item.line_total_cents
            total_cost += cost

            row = rows.get(item.product_id)
            if row is None:
                row = rows[item.product_id] = {
                    "product_id": item.product_id,
                    "product_name": names.get(item.product_id, UNKNOWN_PRODUCT_NAME),
                    "quantity": 0,
                    "sales_cents": 0,
                    "cost_cents": 0,
                }
            row["quantity"] += item.quantity
            row["sales_cents"] += item.line_total_cents
            row["cost_cents"] += cost

    by_product = sorted(rows.values(), key=lambda r: r["sales_cents"], reverse=True)
    for row in by_product:
        row["profit_cents"] = row["sales_cents"] - row["cost_cents"]
        row["margin_percent"] = margin_percent(row["profit_cents"], row["sales_cents"])

    total_profit = total_sales - total_cost
    return {
        "total_sales_cents": total_sales,
        "total_cost_cents": total_cost,
        "total_profit_cents": total_profit,
        "profit_margin_percent": margin_percent(total_profit, total_sales),
        "transactions": transactions,
        "average_transaction_cents": total_sales // transactions if transactions else 0,
        "by_product": by_product,
    }


def daily_series(
    sales: Iterable,
    products: Iterable,
    start_day: date,
    end_day: date,
    tz: tzinfo = timezone.utc,
) -> list[dict]:
    """
    Sales and profit per local calendar day for start_day <= day < end_day.

    Days without sales are present with zeros; sales outside the range are ignored.
    """
    costs = {p.id: p.cost_price_cents or 0 for p in products}

    days: dict[date, dict] = {}
    day = start_day
    while day < end_day:
        days[day] = {"date": day.isoformat(), "sales_cents": 0, "profit_cents": 0, "transactions": 0}
        day += timedelta(days=1)

    for sale in sales:
        entry = days.get(to_local_date(sale.sale_date, tz))
        if entry is None:
            continue
        entry["transactions"] += 1
        for item in sale.items:
            entry["sales_cents"] += item.line_total_cents
            entry["profit_cents"] += item.line_total_cents - _line_cost(item, costs)

    return list(days.values())


def empty_summary() -> dict:
    return {
        "cash_sales_cents": 0,
        "transfer_sales_cents": 0,
        "credit_sales_cents": 0,
        "other_sales_cents": 0,
        "total_sales_cents": 0,
        "total_paid_cents": 0,
        "total_debt_cents": 0,
        "transactions": 0,
        "by_payment_method": {
            method: {"count": 0, "total_cents": 0, "paid_cents": 0, "debt_cents": 0}
            for method in SUMMARY_METHODS
        },
    }


def summarize_sales(sales: Iterable) -> dict:
    """
    Totals by payment method for a set of sales (caller picks the window).

    - cash/transfer/other buckets count the amount actually paid
    - the credit bucket counts the amount left as debt
    """
    summary = empty_summary()
    breakdown = summary["by_payment_method"]

    for sale in sales:
        method = sale.payment_method if sale.payment_method in breakdown else "other"
        total = sale.total_amount_cents or 0
        paid = sale.paid_amount_cents or 0
        debt = sale.debt_amount_cents or 0

        bucket = breakdown[method]
        bucket["count"] += 1
        bucket["total_cents"] += total
        bucket["paid_cents"] += paid
        bucket["debt_cents"] += debt

        summary["total_sales_cents"] += total
        summary["total_paid_cents"] += paid
        summary["total_debt_cents"] += debt
        summary["transactions"] += 1

    summary["cash_sales_cents"] = breakdown["cash"]["paid_cents"]
    summary["transfer_sales_cents"] = breakdown["transfer"]["paid_cents"]
    summary["credit_sales_cents"] = breakdown["credit"]["debt_cents"]
    summary["other_sales_cents"] = breakdown["other"]["paid_cents"]
    return summary


def month_over_month(this_month_total: int, last_month_total: int) -> float:
    """Percent change from last month; 0 when there is no baseline."""
    if not last_month_total:
        return 0.0
    return round((this_month_total - last_month_total) * 100.0 / last_month_total, 2)


def build_notifications(products: Iterable, customers: Iterable) -> list[dict]:
    """
    Derive alerts from current state.

    - stock at or below minimum: warning; at or below half: critical
    - outstanding debt: warning; debt above the customer's limit: critical
    """
    notifications: list[dict] = []

    for product in products:
        if not getattr(product, "is_active", True):
            continue
        level = stock_level(product.current_stock, product.minimum_stock)
        if level == STOCK_OK:
            continue
        critical = level == STOCK_CRITICAL
        notifications.append({
            "type": "low_stock",
            "severity": SEVERITY_CRITICAL if critical else SEVERITY_WARNING,
            "title": "Stock critically low" if critical else "Stock running low",
            "message": f"{product.name}: {product.current_stock} left (minimum {product.minimum_stock})",
            "entity_id": product.id,
        })

    for customer in customers:
        debt = customer.total_debt_cents or 0
        if debt <= 0:
            continue
        limit = getattr(customer, "debt_limit_cents", None)
        over_limit = limit is not None and debt > limit
        notifications.append({
            "type": "overdue_debt",
            "severity": SEVERITY_CRITICAL if over_limit else SEVERITY_WARNING,
            "title": "Debt over limit" if over_limit else "Outstanding debt",
            "message": (
                f"{customer.name} owes {debt} (limit {limit})"
                if over_limit
                else f"{customer.name} owes {debt}"
            ),
            "entity_id": customer.id,
        })

    notifications.sort(key=lambda n: 0 if n["severity"] == SEVERITY_CRITICAL else 1)
    return notifications
