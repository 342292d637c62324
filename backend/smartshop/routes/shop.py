# Overview: Flask API routes for the caller's shop settings.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..models import Shop
from ..services import shop_service
from ..services.shop_service import ShopNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

SHOP_POLICY = ModelValidationPolicy(
    writable_fields=set(shop_service.SHOP_MUTABLE_FIELDS),
    required_on_create={"name"},
)

shop_bp = Blueprint("shop", __name__, url_prefix="/api/shop")


@shop_bp.get("")
@require_auth
def get_my_shop():
    try:
        shop = shop_service.get_shop_for_user(g.current_user.id)
    except OperationalError:
        current_app.logger.warning("Shop lookup failed", exc_info=True)
        return jsonify({"error": "Service unavailable"}), 503
    return jsonify({"shop": shop.to_dict() if shop else None}), 200


@shop_bp.post("")
@require_auth
def create_shop_route():
    """Create the caller's shop (409 if one already exists)."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=False)
        shop = shop_service.create_shop(user_id=g.current_user.id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except OperationalError:
        current_app.logger.exception("Database unavailable while creating shop")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify({"shop": shop.to_dict()}), 201


@shop_bp.patch("")
@require_auth
def update_shop_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=True)
        shop = shop_service.update_shop(user_id=g.current_user.id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except OperationalError:
        current_app.logger.exception("Database unavailable while updating shop")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify({"shop": shop.to_dict()}), 200
