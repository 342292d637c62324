# backend/smartshop/services/products_service.py
"""
Products Service

All product operations are shop-scoped.
- list/get filter by the caller's shop
- create enforces per-shop code uniqueness
- update routes selling-price changes through price_service
- adjust_stock is the explicit stock-update operation
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Shop
from ..validation import ConflictError, ValidationError, MAX_QUANTITY
from .concurrency import lock_for_update, run_with_retry
from .price_service import record_price_change
from .shop_service import get_owned

PRODUCT_MUTABLE_FIELDS = {
    "name", "code", "category", "unit",
    "cost_price_cents", "current_stock", "minimum_stock", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_code_available(shop_id: int, code: str | None, exclude_id: int | None = None) -> None:
    if not code:
        return
    query = db.session.query(Product).filter(Product.shop_id == shop_id, Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Product code already exists in this shop")


def list_products(
    *,
    shop: Shop,
    include_inactive: bool = False,
    search: str | None = None,
    category: str | None = None,
) -> list[Product]:
    query = db.session.query(Product).filter(Product.shop_id == shop.id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), Product.code.ilike(like)))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(*, shop: Shop, product_id: int) -> Product:
    return get_owned(Product, product_id, shop, label="Product")


def create_product(*, shop: Shop, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises ConflictError if the code already exists in the shop.
    """
    _ensure_code_available(shop.id, patch.get("code"))

    p = Product(shop_id=shop.id)
    apply_product_patch(p, patch)
    p.selling_price_cents = patch.get("selling_price_cents", 0)

    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product code already exists in this shop")
    return p


def update_product(*, shop: Shop, product_id: int, patch: dict, user_id: int) -> Product:
    """
    Partial update.

    A selling_price_cents change is recorded in PriceHistory within the same
    transaction as the other field changes.
    """
    def _op():
        p = get_owned(
            Product, product_id, shop, label="Product",
            query=lock_for_update(db.session.query(Product)),
        )
        if "code" in patch:
            _ensure_code_available(shop.id, patch["code"], exclude_id=p.id)

        apply_product_patch(p, patch)
        if "selling_price_cents" in patch:
            record_price_change(p, patch["selling_price_cents"], user_id=user_id, notes="Product update")

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Product code already exists in this shop")
        return p

    return run_with_retry(_op)


def adjust_stock(*, shop: Shop, product_id: int, quantity_delta: int, reason: str | None = None) -> Product:
    """
    Apply a signed stock delta.

    Raises ValidationError for a zero delta or a result below zero.
    """
    if quantity_delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    def _op():
        p = get_owned(
            Product, product_id, shop, label="Product",
            query=lock_for_update(db.session.query(Product)),
        )
        new_stock = (p.current_stock or 0) + quantity_delta
        if new_stock < 0:
            raise ValidationError(
                "Stock cannot go below zero",
                details={"product_id": p.id, "current_stock": p.current_stock, "quantity_delta": quantity_delta},
            )
        if new_stock > MAX_QUANTITY:
            raise ValidationError(f"current_stock cannot exceed {MAX_QUANTITY}")
        p.current_stock = new_stock
        db.session.commit()
        return p

    p = run_with_retry(_op)
    current_app.logger.info(
        "Stock adjusted product id=%s delta=%s now=%s reason=%s",
        p.id, quantity_delta, p.current_stock, reason,
    )
    return p
