# Overview: Service-layer operations for end-of-day cash close.

"""
Daily Close Service

Totals are DERIVED from the sales recorded for the shop-local business day
(same computation as the dashboard). Client-sent totals are only compared
against the derived values.

One close per (shop, business_date); a second attempt is a CONFLICT.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DailyClose, Shop
from ..validation import ConflictError, ValidationError, check_amount, coerce_int
from .dashboard_service import day_summary, resolve_business_day
from smartshop.time_utils import local_today, utcnow

# request field -> key in the sales summary
CLOSE_TOTAL_FIELDS = {
    "total_sales_cents": "total_sales_cents",
    "total_cash_cents": "cash_sales_cents",
    "total_transfer_cents": "transfer_sales_cents",
    "total_credit_cents": "credit_sales_cents",
    "total_transactions": "transactions",
}


def _close_totals(summary: dict) -> dict:
    return {field: summary[key] for field, key in CLOSE_TOTAL_FIELDS.items()}


def _existing_close(shop: Shop, business_date) -> DailyClose | None:
    return db.session.query(DailyClose).filter_by(shop_id=shop.id, business_date=business_date).first()


def preview_close(*, shop: Shop, date_value: str | None = None) -> dict:
    """Derived totals for the day, without writing anything."""
    day, tz = resolve_business_day(shop, date_value)
    totals = _close_totals(day_summary(shop, day, tz))
    existing = _existing_close(shop, day)
    return {
        "business_date": day.isoformat(),
        **totals,
        "already_closed": existing is not None,
        "close": existing.to_dict() if existing else None,
    }


def create_close(*, shop: Shop, payload: dict, user_id: int) -> DailyClose:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    day, tz = resolve_business_day(shop, payload.get("date"))
    if day > local_today(tz):
        raise ValidationError("Cannot close a future business day")

    counted = payload.get("counted_cash_cents")
    if counted is not None:
        counted = coerce_int("counted_cash_cents", counted)
        check_amount("counted_cash_cents", counted)

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    if _existing_close(shop, day) is not None:
        raise ConflictError(f"Business day {day.isoformat()} is already closed")

    totals = _close_totals(day_summary(shop, day, tz))

    mismatches = {}
    for field, derived in totals.items():
        if payload.get(field) is None:
            continue
        supplied = coerce_int(field, payload[field])
        if supplied != derived:
            mismatches[field] = {"supplied": supplied, "expected": derived}
    if mismatches:
        raise ValidationError("Close totals do not match recorded sales", details=mismatches)

    close = DailyClose(
        shop_id=shop.id,
        business_date=day,
        close_date=utcnow(),
        counted_cash_cents=counted,
        cash_variance_cents=(counted - totals["total_cash_cents"]) if counted is not None else None,
        notes=notes,
        closed_by_user_id=user_id,
        **totals,
    )
    db.session.add(close)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Business day {day.isoformat()} is already closed")

    current_app.logger.info(
        "Closed business day %s for shop id=%s total=%s variance=%s",
        day.isoformat(), shop.id, close.total_sales_cents, close.cash_variance_cents,
    )
    return close


def get_close(*, shop: Shop, date_value: str | None = None) -> DailyClose | None:
    day, _ = resolve_business_day(shop, date_value)
    return _existing_close(shop, day)


def list_history(*, shop: Shop, limit: int | None = None) -> list[DailyClose]:
    if limit is None:
        limit = current_app.config.get("DAILY_CLOSE_HISTORY_LIMIT", 30)
    return (
        db.session.query(DailyClose)
        .filter(DailyClose.shop_id == shop.id)
        .order_by(DailyClose.business_date.desc(), DailyClose.id.desc())
        .limit(limit)
        .all()
    )
