# Overview: Flask API routes for end-of-day cash close.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import daily_close_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_shop

daily_close_bp = Blueprint("daily_close", __name__, url_prefix="/api/daily-close")


@daily_close_bp.get("")
@require_auth
@require_shop
def get_close_route():
    """The close for ?date= (default today), or {"close": null}."""
    try:
        close = daily_close_service.get_close(shop=g.shop, date_value=request.args.get("date"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OperationalError:
        current_app.logger.warning("Close lookup failed", exc_info=True)
        return jsonify({"error": "Service unavailable"}), 503
    return jsonify({"close": close.to_dict() if close else None}), 200


@daily_close_bp.get("/history")
@require_auth
@require_shop
def history_route():
    try:
        closes = daily_close_service.list_history(shop=g.shop)
    except OperationalError:
        current_app.logger.warning("Close history unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200
    return jsonify({"items": [c.to_dict() for c in closes], "count": len(closes)}), 200


@daily_close_bp.get("/preview")
@require_auth
@require_shop
def preview_route():
    try:
        preview = daily_close_service.preview_close(shop=g.shop, date_value=request.args.get("date"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OperationalError:
        current_app.logger.exception("Database unavailable while previewing close")
        return jsonify({"error": "Service unavailable"}), 503
    return jsonify(preview), 200


@daily_close_bp.post("")
@require_auth
@require_shop
def create_close_route():
    """
    Close a business day.

    Body: {"date"?, "counted_cash_cents"?, "notes"?, "total_*"?}
    Totals are derived from recorded sales; sent totals must match.
    """
    payload = request.get_json(silent=True) or {}

    try:
        close = daily_close_service.create_close(shop=g.shop, payload=payload, user_id=g.current_user.id)
    except ValidationError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except OperationalError:
        current_app.logger.exception("Database unavailable while closing day")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(close.to_dict()), 201
