# Overview: Flask API routes for the product catalog and stock adjustments.

# backend/smartshop/routes/products.py
"""
Product management routes.

All product operations are scoped to the caller's shop (g.shop, set by
@require_shop). Addressing another shop's product returns 403.
"""
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import products_service
from ..services.shop_service import ShopAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
    ConflictError,
    NotFoundError,
    json_object,
)
from ..decorators import require_auth, require_shop

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "code", "category", "unit",
        "cost_price_cents", "selling_price_cents",
        "current_stock", "minimum_stock", "is_active",
    },
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_shop
def list_products():
    """
    List the shop's products, ordered by name.

    Query params:
    - include_inactive: "1"/"true" to include deactivated products
    - q: substring match on name or code
    - category: exact category
    """
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    try:
        products = products_service.list_products(
            shop=g.shop,
            include_inactive=include_inactive,
            search=request.args.get("q"),
            category=request.args.get("category"),
        )
    except OperationalError:
        current_app.logger.warning("Product list unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200

    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_auth
@require_shop
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(shop=g.shop, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except OperationalError:
        current_app.logger.exception("Database unavailable while creating product")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(created.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_shop
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(shop=g.shop, product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.warning("Product lookup failed", exc_info=True)
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(product.to_dict()), 200


@products_bp.patch("/<int:product_id>")
@require_auth
@require_shop
def update_product_route(product_id: int):
    """
    Partial update.

    A selling_price_cents change is logged to price history.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(
            shop=g.shop,
            product_id=product_id,
            patch=patch,
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except OperationalError:
        current_app.logger.exception("Database unavailable while updating product")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(updated.to_dict()), 200


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_shop
def adjust_stock_route(product_id: int):
    """Explicit stock update: {"quantity_delta": int, "reason": str?}."""
    try:
        payload = json_object(request.get_json(silent=True))
        if payload.get("quantity_delta") is None:
            raise ValidationError("quantity_delta is required")
        delta = coerce_int("quantity_delta", payload["quantity_delta"])
        product = products_service.adjust_stock(
            shop=g.shop,
            product_id=product_id,
            quantity_delta=delta,
            reason=payload.get("reason"),
        )
    except ValidationError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.exception("Database unavailable while adjusting stock")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(product.to_dict()), 200
