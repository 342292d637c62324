# Overview: Flask API routes for quick-sale product shortcuts.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import shortcut_service
from ..services.shop_service import ShopAccessError
from ..validation import ValidationError, NotFoundError, json_object
from ..decorators import require_auth, require_shop

shortcuts_bp = Blueprint("shortcuts", __name__, url_prefix="/api/shortcuts")


@shortcuts_bp.get("")
@require_auth
@require_shop
def list_shortcuts_route():
    try:
        shortcuts = shortcut_service.list_shortcuts(shop=g.shop)
    except OperationalError:
        current_app.logger.warning("Shortcuts unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200
    return jsonify({"items": [s.to_dict() for s in shortcuts], "count": len(shortcuts)}), 200


@shortcuts_bp.put("")
@require_auth
@require_shop
def replace_shortcuts_route():
    """Body: {"items": [{"product_id", "color"?}, ...]} in display order."""
    try:
        payload = json_object(request.get_json(silent=True))
        shortcuts = shortcut_service.replace_shortcuts(shop=g.shop, items=payload.get("items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.exception("Database unavailable while saving shortcuts")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify({"items": [s.to_dict() for s in shortcuts], "count": len(shortcuts)}), 200
