# Overview: Service-layer operations for selling-price changes and their history.

"""
Price Change Service

Every change to Product.selling_price_cents goes through record_price_change,
so the PriceHistory log is complete. The product update and the history row
are written in the same transaction.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PriceHistory, Product, Shop
from ..validation import ConflictError, check_amount
from .concurrency import lock_for_update, run_with_retry
from .shop_service import get_owned
from smartshop.time_utils import utcnow


def record_price_change(
    product: Product,
    new_price_cents: int,
    *,
    user_id: int,
    notes: str | None = None,
) -> PriceHistory | None:
    """
    Set the selling price and append a history row (no commit).

    Returns None when the price is unchanged.
    """
    check_amount("new_price_cents", new_price_cents, allow_none=False)
    old_price = product.selling_price_cents
    if old_price == new_price_cents:
        return None

    entry = PriceHistory(
        product_id=product.id,
        old_price_cents=old_price,
        new_price_cents=new_price_cents,
        changed_by_user_id=user_id,
        change_date=utcnow(),
        notes=notes,
    )
    product.selling_price_cents = new_price_cents
    db.session.add(entry)
    return entry


def change_price(
    *,
    shop: Shop,
    product_id: int,
    new_price_cents: int,
    user_id: int,
    old_price_cents: int | None = None,
    notes: str | None = None,
) -> tuple[Product, PriceHistory | None]:
    """
    Atomic "change price".

    If old_price_cents is supplied it must match the current selling price,
    otherwise the caller was looking at a stale price (ConflictError).
    """
    def _op():
        product = get_owned(
            Product, product_id, shop, label="Product",
            query=lock_for_update(db.session.query(Product)),
        )
        if old_price_cents is not None and old_price_cents != product.selling_price_cents:
            raise ConflictError(
                f"Price has changed: expected {old_price_cents}, current {product.selling_price_cents}"
            )
        entry = record_price_change(product, new_price_cents, user_id=user_id, notes=notes)
        db.session.commit()
        return product, entry

    product, entry = run_with_retry(_op)
    if entry is not None:
        current_app.logger.info(
            "Price change product id=%s %s -> %s",
            product.id, entry.old_price_cents, entry.new_price_cents,
        )
    return product, entry


def list_price_history(*, shop: Shop, product_id: int | None = None, limit: int | None = None) -> list[PriceHistory]:
    """Newest first, scoped to the shop's products."""
    if limit is None:
        limit = current_app.config.get("PRICE_HISTORY_LIMIT", 50)

    query = (
        db.session.query(PriceHistory)
        .join(Product, Product.id == PriceHistory.product_id)
        .filter(Product.shop_id == shop.id)
    )
    if product_id is not None:
        get_owned(Product, product_id, shop, label="Product")
        query = query.filter(PriceHistory.product_id == product_id)

    return (
        query.order_by(PriceHistory.change_date.desc(), PriceHistory.id.desc())
        .limit(limit)
        .all()
    )
