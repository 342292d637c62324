# Overview: Dashboard read models built from recorded sales, products and customers.

"""
Dashboard Service

Windows are the shop's local calendar day / month, half-open and converted
to UTC for querying (see time_utils.day_window / month_window).

DEGRADED READS: if the database is unreachable the dashboard answers with
an all-zero / empty payload flagged "degraded": true instead of failing.
"""

from __future__ import annotations

from datetime import date, tzinfo

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import DBAPIError

from ..extensions import db
from ..models import Customer, Product, Sale, Shop
from ..validation import ValidationError
from ..analytics import (
    build_notifications,
    daily_series,
    empty_summary,
    low_stock_products,
    month_over_month,
    profit_summary,
    summarize_sales,
    top_debtors,
    top_selling_products,
)
from .sales_service import sales_in_window
from .shop_service import shop_timezone
from smartshop.time_utils import (
    day_window,
    first_of_month,
    first_of_next_month,
    first_of_previous_month,
    local_today,
    month_window,
    parse_business_date,
)


def resolve_business_day(shop: Shop, value: str | None) -> tuple[date, tzinfo]:
    """Requested day (YYYY-MM-DD or ISO datetime) in shop-local terms; today by default."""
    tz = shop_timezone(shop)
    try:
        day = parse_business_date(value, tz)
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD or an ISO-8601 datetime")
    return day or local_today(tz), tz


def day_summary(shop: Shop, day: date, tz: tzinfo) -> dict:
    start, end = day_window(day, tz)
    return summarize_sales(sales_in_window(shop.id, start, end))


def month_total(shop: Shop, day: date, tz: tzinfo) -> int:
    start, end = month_window(day, tz)
    total = (
        db.session.query(func.coalesce(func.sum(Sale.total_amount_cents), 0))
        .filter(Sale.shop_id == shop.id, Sale.sale_date >= start, Sale.sale_date < end)
        .scalar()
    )
    return int(total or 0)


def _stats_payload(day: date, tz: tzinfo, summary: dict, monthly: int, degraded: bool) -> dict:
    return {
        "date": day.isoformat(),
        "timezone": str(tz),
        "today_stats": summary,
        "monthly_sales_cents": monthly,
        "total_sales_cents": summary["total_sales_cents"],
        "total_cash_cents": summary["cash_sales_cents"],
        "total_transfer_cents": summary["transfer_sales_cents"],
        "total_credit_cents": summary["credit_sales_cents"],
        "total_transactions": summary["transactions"],
        "degraded": degraded,
    }


def get_dashboard_stats(*, shop: Shop, date_value: str | None = None) -> dict:
    day, tz = resolve_business_day(shop, date_value)
    try:
        summary = day_summary(shop, day, tz)
        monthly = month_total(shop, day, tz)
    except DBAPIError:
        db.session.rollback()
        current_app.logger.warning("Dashboard stats unavailable; returning zeros", exc_info=True)
        return _stats_payload(day, tz, empty_summary(), 0, degraded=True)

    return _stats_payload(day, tz, summary, monthly, degraded=False)


def get_insights(*, shop: Shop, date_value: str | None = None, limit: int = 5) -> dict:
    """Low stock, top debtors, this month's best sellers and month-over-month change."""
    day, tz = resolve_business_day(shop, date_value)
    try:
        # Inactive products stay in the list so past sales still resolve names
        products = (
            db.session.query(Product)
            .filter(Product.shop_id == shop.id)
            .order_by(Product.name.asc(), Product.id.asc())
            .all()
        )
        customers = (
            db.session.query(Customer)
            .filter(Customer.shop_id == shop.id, Customer.total_debt_cents > 0)
            .order_by(Customer.name.asc(), Customer.id.asc())
            .all()
        )
        start, end = month_window(day, tz)
        month_sales = sales_in_window(shop.id, start, end)
        this_month = sum(s.total_amount_cents for s in month_sales)
        last_month = month_total(shop, first_of_previous_month(day), tz)
    except DBAPIError:
        db.session.rollback()
        current_app.logger.warning("Dashboard insights unavailable; returning empty lists", exc_info=True)
        return {
            "date": day.isoformat(),
            "low_stock": [],
            "top_debtors": [],
            "top_products": [],
            "monthly_sales_cents": 0,
            "previous_month_sales_cents": 0,
            "month_over_month_percent": 0.0,
            "degraded": True,
        }

    return {
        "date": day.isoformat(),
        "low_stock": [p.to_dict() for p in low_stock_products(products, limit=limit)],
        "top_debtors": [c.to_dict() for c in top_debtors(customers, limit=limit)],
        "top_products": top_selling_products(month_sales, products, day, limit=limit, tz=tz),
        "monthly_sales_cents": this_month,
        "previous_month_sales_cents": last_month,
        "month_over_month_percent": month_over_month(this_month, last_month),
        "degraded": False,
    }


def get_notifications(*, shop: Shop) -> list[dict]:
    try:
        products = (
            db.session.query(Product)
            .filter(Product.shop_id == shop.id, Product.is_active.is_(True))
            .order_by(Product.current_stock.asc(), Product.id.asc())
            .all()
        )
        customers = (
            db.session.query(Customer)
            .filter(Customer.shop_id == shop.id, Customer.total_debt_cents > 0)
            .order_by(Customer.total_debt_cents.desc(), Customer.id.asc())
            .all()
        )
    except DBAPIError:
        db.session.rollback()
        current_app.logger.warning("Notifications unavailable; returning none", exc_info=True)
        return []
    return build_notifications(products, customers)


def _reports_payload(day: date, summary: dict, daily: list[dict], degraded: bool) -> dict:
    return {
        "date": day.isoformat(),
        "month": first_of_month(day).strftime("%Y-%m"),
        "summary": summary,
        "daily": daily,
        "degraded": degraded,
    }


def get_reports(*, shop: Shop, date_value: str | None = None) -> dict:
    """Profit report for the local month containing the requested day."""
    day, tz = resolve_business_day(shop, date_value)
    start_day, end_day = first_of_month(day), first_of_next_month(day)
    try:
        # Inactive products stay in so past sales keep their names and costs
        products = db.session.query(Product).filter(Product.shop_id == shop.id).all()
        start, end = month_window(day, tz)
        month_sales = sales_in_window(shop.id, start, end)
    except DBAPIError:
        db.session.rollback()
        current_app.logger.warning("Profit report unavailable; returning zeros", exc_info=True)
        return _reports_payload(
            day, profit_summary([], []), daily_series([], [], start_day, end_day), degraded=True,
        )

    return _reports_payload(
        day,
        profit_summary(month_sales, products),
        daily_series(month_sales, products, start_day, end_day, tz),
        degraded=False,
    )
