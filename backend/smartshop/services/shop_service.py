# Overview: Service-layer operations for shops and shop scoping helpers.

"""
Shop Service: ownership and scoping

Every shop endpoint resolves the caller's Shop first and scopes all queries
to it. Records of another shop are never returned or mutated.

SECURITY INVARIANTS:
1. A user owns at most one shop (CONFLICT on a second create)
2. IDs from client input are checked against the caller's shop
   (ShopAccessError -> 403)
"""

from __future__ import annotations

from datetime import tzinfo

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Shop
from ..validation import ConflictError, NotFoundError, ValidationError
from smartshop.time_utils import resolve_timezone

SHOP_MUTABLE_FIELDS = {
    "name", "phone", "address", "province", "district",
    "sub_district", "postal_code", "receipt_footer", "timezone",
}


class ShopNotFoundError(LookupError):
    """Raised when the caller has no shop yet."""
    pass


class ShopAccessError(Exception):
    """Raised when a record belonging to another shop is addressed."""
    pass


def get_shop_for_user(user_id: int) -> Shop | None:
    return db.session.query(Shop).filter_by(user_id=user_id).first()


def require_shop_for_user(user_id: int) -> Shop:
    shop = get_shop_for_user(user_id)
    if shop is None:
        raise ShopNotFoundError("Shop not found")
    return shop


def shop_timezone(shop: Shop) -> tzinfo:
    """Zone for the shop's calendar windows (shop setting, else config default)."""
    name = shop.timezone or current_app.config.get("DEFAULT_TIMEZONE", "UTC")
    return resolve_timezone(name)


def get_owned(model, record_id: int, shop: Shop, *, label: str, query=None):
    """
    Load a shop-owned record by id.

    Raises NotFoundError if it doesn't exist, ShopAccessError if it belongs
    to another shop.
    """
    q = query if query is not None else db.session.query(model)
    record = q.filter(model.id == record_id).first()
    if record is None:
        raise NotFoundError(f"{label} not found")
    if record.shop_id != shop.id:
        raise ShopAccessError(f"{label} belongs to another shop")
    return record


def _apply_shop_patch(shop: Shop, patch: dict) -> None:
    if "timezone" in patch and patch["timezone"]:
        try:
            resolve_timezone(patch["timezone"])
        except ValueError as e:
            raise ValidationError(str(e))
    for k, v in patch.items():
        if k in SHOP_MUTABLE_FIELDS:
            setattr(shop, k, v)


def create_shop(*, user_id: int, patch: dict) -> Shop:
    """
    Create the caller's shop.

    Raises ConflictError if the user already has one; the existing shop is
    left untouched.
    """
    if get_shop_for_user(user_id) is not None:
        raise ConflictError("Shop already exists for this user")

    shop = Shop(user_id=user_id)
    _apply_shop_patch(shop, patch)
    db.session.add(shop)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent create lost the race on uq_shops_user
        db.session.rollback()
        raise ConflictError("Shop already exists for this user")

    current_app.logger.info("Created shop id=%s for user id=%s", shop.id, user_id)
    return shop


def update_shop(*, user_id: int, patch: dict) -> Shop:
    shop = require_shop_for_user(user_id)
    _apply_shop_patch(shop, patch)
    db.session.commit()
    return shop


def list_shops() -> list[Shop]:
    return db.session.query(Shop).order_by(Shop.id.asc()).all()
