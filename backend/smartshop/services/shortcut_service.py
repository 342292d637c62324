# Overview: Service-layer operations for the quick-sale product shortcuts.

from __future__ import annotations

import re

from ..extensions import db
from ..models import Product, ProductShortcut, Shop
from ..validation import ValidationError, coerce_int
from .concurrency import run_with_retry
from .shop_service import get_owned

MAX_SHORTCUTS = 50
COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def list_shortcuts(*, shop: Shop) -> list[ProductShortcut]:
    return (
        db.session.query(ProductShortcut)
        .filter(ProductShortcut.shop_id == shop.id)
        .order_by(ProductShortcut.position.asc(), ProductShortcut.id.asc())
        .all()
    )


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    if len(raw_items) > MAX_SHORTCUTS:
        raise ValidationError(f"At most {MAX_SHORTCUTS} shortcuts are allowed")

    items = []
    seen = set()
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        product_id = coerce_int(f"items[{index}].product_id", raw["product_id"])
        if product_id in seen:
            raise ValidationError(f"Duplicate product_id {product_id} in shortcuts")
        seen.add(product_id)

        color = raw.get("color")
        if color is not None and not COLOR_RE.match(str(color)):
            raise ValidationError(f"items[{index}].color must look like #RRGGBB")
        items.append({"product_id": product_id, "color": color})
    return items


def replace_shortcuts(*, shop: Shop, items) -> list[ProductShortcut]:
    """Replace the whole ordering; positions follow list order."""
    parsed = _parse_items(items)

    def _op():
        for item in parsed:
            get_owned(Product, item["product_id"], shop, label="Product")

        db.session.query(ProductShortcut).filter(ProductShortcut.shop_id == shop.id).delete()
        # Flush the delete so re-adding a product doesn't trip uq_shortcuts_shop_product
        db.session.flush()

        for position, item in enumerate(parsed):
            db.session.add(ProductShortcut(
                shop_id=shop.id,
                product_id=item["product_id"],
                position=position,
                color=item["color"],
            ))
        db.session.commit()

    run_with_retry(_op)
    return list_shortcuts(shop=shop)
