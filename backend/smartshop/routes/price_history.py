# Overview: Flask API routes for selling-price changes and their history.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import price_service
from ..services.shop_service import ShopAccessError
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    check_amount,
    coerce_int,
    json_object,
)
from ..decorators import require_auth, require_shop

price_history_bp = Blueprint("price_history", __name__, url_prefix="/api/price-history")


@price_history_bp.get("")
@require_auth
@require_shop
def list_price_history_route():
    """Newest first; optional ?product_id= filter."""
    product_id = request.args.get("product_id", type=int)
    try:
        entries = price_service.list_price_history(shop=g.shop, product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.warning("Price history unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200

    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@price_history_bp.post("")
@require_auth
@require_shop
def change_price_route():
    """
    Atomic price change.

    Body: {"product_id", "new_price_cents", "old_price_cents"?, "notes"?}
    old_price_cents, when sent, must match the current price (409 otherwise).
    """
    try:
        payload = json_object(request.get_json(silent=True))
        for field in ("product_id", "new_price_cents"):
            if payload.get(field) is None:
                raise ValidationError(f"{field} is required")
        product_id = coerce_int("product_id", payload["product_id"])
        new_price = coerce_int("new_price_cents", payload["new_price_cents"])
        check_amount("new_price_cents", new_price)
        old_price = None
        if payload.get("old_price_cents") is not None:
            old_price = coerce_int("old_price_cents", payload["old_price_cents"])

        notes = payload.get("notes")
        product, entry = price_service.change_price(
            shop=g.shop,
            product_id=product_id,
            new_price_cents=new_price,
            old_price_cents=old_price,
            user_id=g.current_user.id,
            notes=(str(notes).strip() or None) if notes is not None else None,
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
        current_app.logger.exception("Database unavailable while changing price")
        return jsonify({"error": "Service unavailable"}), 503

    status = 201 if entry else 200
    return jsonify({
        "product": product.to_dict(),
        "entry": entry.to_dict() if entry else None,
    }), status
