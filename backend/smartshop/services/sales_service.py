"""
Sales Service - atomic sale recording

A sale and its line items are written in ONE transaction together with
every aggregate it moves:
- customer.total_debt_cents += sale debt
- product.current_stock -= quantity (only when DECREMENT_STOCK_ON_SALE)

Amounts are derived on the server; client-supplied totals are only
cross-checked, never trusted.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, DailyClose, Product, Sale, SaleItem, Shop, PAYMENT_METHODS
from ..validation import ConflictError, ValidationError, check_amount, coerce_int, MAX_QUANTITY
from .concurrency import lock_for_update, run_with_retry
from .shop_service import get_owned, shop_timezone
from smartshop.time_utils import day_window, local_today, parse_iso_datetime, to_local_date, utcnow

IDEMPOTENCY_KEY_MAX = 64


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _optional_int(payload: dict, key: str) -> int | None:
    raw = payload.get(key)
    if raw is None:
        return None
    return coerce_int(key, raw)


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")

        quantity = coerce_int(f"items[{index}].quantity", raw["quantity"])
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_QUANTITY}")

        unit_price = _optional_int(raw, "unit_price_cents")
        check_amount(f"items[{index}].unit_price_cents", unit_price)

        items.append({
            "product_id": coerce_int(f"items[{index}].product_id", raw["product_id"]),
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "line_total_cents": _optional_int(raw, "line_total_cents"),
        })
    return items


def parse_sale_payload(payload: dict) -> dict:
    """Shape-check a sales.create payload; amounts are reconciled later."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payment_method = payload.get("payment_method") or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    sale_date = None
    if payload.get("sale_date"):
        try:
            sale_date = parse_iso_datetime(str(payload["sale_date"]))
        except ValueError:
            raise ValidationError("sale_date must be an ISO-8601 datetime")

    key = payload.get("idempotency_key")
    if key is not None:
        key = str(key).strip() or None
        if key and len(key) > IDEMPOTENCY_KEY_MAX:
            raise ValidationError(f"idempotency_key exceeds max length {IDEMPOTENCY_KEY_MAX}")

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    parsed = {
        "customer_id": _optional_int(payload, "customer_id"),
        "payment_method": payment_method,
        "total_amount_cents": _optional_int(payload, "total_amount_cents"),
        "paid_amount_cents": _optional_int(payload, "paid_amount_cents"),
        "debt_amount_cents": _optional_int(payload, "debt_amount_cents"),
        "notes": notes,
        "idempotency_key": key,
        "sale_date": sale_date,
        "items": _parse_items(payload.get("items")),
    }
    for field in ("total_amount_cents", "paid_amount_cents", "debt_amount_cents"):
        check_amount(field, parsed[field])
    return parsed


def reconcile_amounts(
    line_totals: list[int],
    *,
    total: int | None,
    paid: int | None,
    debt: int | None,
) -> tuple[int, int, int]:
    """
    Derive (total, paid, debt) from line totals.

    - total = sum of line totals (a supplied total must match)
    - paid defaults to total - debt when debt is given, otherwise to total
    - debt = total - paid (a supplied debt must match)
    """
    derived_total = sum(line_totals)
    if total is not None and total != derived_total:
        raise SaleError(
            "total_amount_cents does not match the sum of line totals",
            details={"total_amount_cents": total, "expected": derived_total},
        )

    if paid is None:
        paid = derived_total - debt if debt is not None else derived_total
    if paid < 0 or paid > derived_total:
        raise SaleError(
            "paid_amount_cents must be between 0 and the sale total",
            details={"paid_amount_cents": paid, "total_amount_cents": derived_total},
        )

    derived_debt = derived_total - paid
    if debt is not None and debt != derived_debt:
        raise SaleError(
            "debt_amount_cents must equal total minus paid",
            details={"debt_amount_cents": debt, "expected": derived_debt},
        )
    return derived_total, paid, derived_debt


def find_by_idempotency_key(shop_id: int, key: str | None) -> Sale | None:
    if not key:
        return None
    return db.session.query(Sale).filter_by(shop_id=shop_id, idempotency_key=key).first()


def _check_stock(products: dict[int, Product], items: list[dict]) -> None:
    requested: dict[int, int] = {}
    for item in items:
        requested[item["product_id"]] = requested.get(item["product_id"], 0) + item["quantity"]

    insufficient = []
    for product_id, qty in requested.items():
        on_hand = products[product_id].current_stock or 0
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise SaleError("Insufficient stock to record sale", details={"items": insufficient})


def _check_business_day(shop: Shop, sale_date: datetime | None) -> None:
    """A sale may not land in a future or already closed shop-local day."""
    tz = shop_timezone(shop)
    day = to_local_date(sale_date or utcnow(), tz)
    if day > local_today(tz):
        raise ValidationError("sale_date cannot be in a future business day")
    closed = (
        db.session.query(DailyClose.id)
        .filter(DailyClose.shop_id == shop.id, DailyClose.business_date == day)
        .first()
    )
    if closed:
        raise ConflictError(f"Business day {day.isoformat()} is already closed")


def create_sale(*, shop: Shop, payload: dict, user_id: int | None = None) -> tuple[Sale, bool]:
    """
    Record a sale with its items.

    Returns (sale, created). created is False when the idempotency key
    matched an existing sale; nothing is written in that case.
    """
    data = parse_sale_payload(payload)
    key = data["idempotency_key"]

    existing = find_by_idempotency_key(shop.id, key)
    if existing is not None:
        return existing, False

    _check_business_day(shop, data["sale_date"])

    decrement_stock = bool(current_app.config.get("DECREMENT_STOCK_ON_SALE", False))

    def _op():
        customer = None
        if data["customer_id"] is not None:
            customer = get_owned(
                Customer, data["customer_id"], shop, label="Customer",
                query=lock_for_update(db.session.query(Customer)),
            )
            if not customer.is_active:
                raise SaleError("Customer is inactive", details={"customer_id": customer.id})

        products: dict[int, Product] = {}
        for item in data["items"]:
            pid = item["product_id"]
            if pid not in products:
                product = get_owned(
                    Product, pid, shop, label="Product",
                    query=lock_for_update(db.session.query(Product)),
                )
                if not product.is_active:
                    raise SaleError("Product is inactive", details={"product_id": pid})
                products[pid] = product

        lines = []
        for index, item in enumerate(data["items"]):
            unit_price = item["unit_price_cents"]
            if unit_price is None:
                unit_price = products[item["product_id"]].selling_price_cents
            line_total = item["quantity"] * unit_price
            if item["line_total_cents"] is not None and item["line_total_cents"] != line_total:
                raise SaleError(
                    f"items[{index}].line_total_cents does not match quantity x unit price",
                    details={"line_total_cents": item["line_total_cents"], "expected": line_total},
                )
            lines.append((item, unit_price, line_total))

        total, paid, debt = reconcile_amounts(
            [line_total for _, _, line_total in lines],
            total=data["total_amount_cents"],
            paid=data["paid_amount_cents"],
            debt=data["debt_amount_cents"],
        )
        check_amount("total_amount_cents", total)

        if debt > 0 and customer is None:
            raise SaleError("A sale with outstanding debt requires a customer")

        if decrement_stock:
            _check_stock(products, data["items"])

        sale = Sale(
            shop_id=shop.id,
            customer_id=customer.id if customer else None,
            sale_date=data["sale_date"] or utcnow(),
            total_amount_cents=total,
            paid_amount_cents=paid,
            debt_amount_cents=debt,
            payment_method=data["payment_method"],
            notes=data["notes"],
            idempotency_key=key,
            created_by_user_id=user_id,
        )
        db.session.add(sale)
        db.session.flush()  # sale.id for the items

        for item, unit_price, line_total in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price_cents=unit_price,
                line_total_cents=line_total,
            ))
            if decrement_stock:
                products[item["product_id"]].current_stock -= item["quantity"]

        if customer is not None and debt > 0:
            customer.total_debt_cents = (customer.total_debt_cents or 0) + debt

        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except IntegrityError:
        # A concurrent request with the same key committed first
        existing = find_by_idempotency_key(shop.id, key)
        if existing is not None:
            return existing, False
        raise

    current_app.logger.info(
        "Recorded sale id=%s shop id=%s total=%s debt=%s",
        sale.id, shop.id, sale.total_amount_cents, sale.debt_amount_cents,
    )
    return sale, True


def _search_clause(shop: Shop, text: str):
    like = f"%{text}%"
    by_customer = (
        db.select(Customer.id)
        .where(Customer.shop_id == shop.id, Customer.name.ilike(like))
    )
    by_product = (
        db.select(SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .where(Product.shop_id == shop.id, Product.name.ilike(like))
    )
    clauses = [Sale.customer_id.in_(by_customer), Sale.id.in_(by_product)]

    try:
        day = date.fromisoformat(text)
    except ValueError:
        day = None
    if day is not None:
        start, end = day_window(day, shop_timezone(shop))
        clauses.append(db.and_(Sale.sale_date >= start, Sale.sale_date < end))
    return db.or_(*clauses)


def list_sales(
    *,
    shop: Shop,
    limit: int | None = None,
    customer_id: int | None = None,
    payment_method: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    search: str | None = None,
) -> list[Sale]:
    """
    Newest first, capped at SALES_LIST_LIMIT.

    search matches the customer name or any line's product name
    (case-insensitive); a YYYY-MM-DD search also matches that shop-local day.
    """
    if limit is None:
        limit = current_app.config.get("SALES_LIST_LIMIT", 100)

    query = db.session.query(Sale).filter(Sale.shop_id == shop.id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date < end)
    if search and search.strip():
        query = query.filter(_search_clause(shop, search.strip()))

    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()


def get_sale(*, shop: Shop, sale_id: int) -> Sale:
    return get_owned(Sale, sale_id, shop, label="Sale")


def sales_in_window(shop_id: int, start: datetime, end: datetime) -> list[Sale]:
    """All sales with start <= sale_date < end (UTC-naive bounds)."""
    return (
        db.session.query(Sale)
        .filter(Sale.shop_id == shop_id, Sale.sale_date >= start, Sale.sale_date < end)
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )
