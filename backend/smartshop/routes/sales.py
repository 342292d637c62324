# Overview: Flask API routes for recording sales and listing a shop's sales history.

# backend/smartshop/routes/sales.py
"""
Sales routes.

POST /api/sales records a sale and its items atomically. Replaying the same
idempotency_key returns the stored sale with 200 instead of 201.
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..models import PAYMENT_METHODS
from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.shop_service import ShopAccessError
from ..services.dashboard_service import resolve_business_day
from ..validation import ConflictError, ValidationError, NotFoundError
from ..decorators import require_auth, require_shop
from smartshop.time_utils import day_window


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error(e, status: int):
    body = {"error": str(e)}
    details = getattr(e, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), status


@sales_bp.post("")
@require_auth
@require_shop
def create_sale_route():
    payload = request.get_json(silent=True)

    try:
        sale, created = sales_service.create_sale(
            shop=g.shop,
            payload=payload if payload is not None else {},
            user_id=g.current_user.id,
        )
    except (ValidationError, SaleError) as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ShopAccessError as e:
        return _error(e, 403)
    except ConflictError as e:
        return _error(e, 409)
    except OperationalError:
        current_app.logger.exception("Database unavailable while recording sale")
        return jsonify({"error": "Service unavailable"}), 503
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    status = 201 if created else 200
    return jsonify(sale.to_dict(include_items=True)), status


@sales_bp.get("")
@require_auth
@require_shop
def list_sales_route():
    """
    Newest first, capped at SALES_LIST_LIMIT.

    Query params:
    - customer_id: int
    - payment_method: cash | credit | transfer | other
    - date: only that shop-local day (YYYY-MM-DD)
    - q: customer name, product name or YYYY-MM-DD
    - include_items: "1"/"true" to embed line items
    """
    customer_id = request.args.get("customer_id", type=int)
    payment_method = request.args.get("payment_method")
    include_items = request.args.get("include_items", "").lower() in {"1", "true", "yes"}

    if payment_method and payment_method not in PAYMENT_METHODS:
        return jsonify({"error": f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}"}), 400

    start = end = None
    try:
        if request.args.get("date"):
            day, tz = resolve_business_day(g.shop, request.args["date"])
            start, end = day_window(day, tz)
        sales = sales_service.list_sales(
            shop=g.shop,
            customer_id=customer_id,
            payment_method=payment_method,
            start=start,
            end=end,
            search=request.args.get("q"),
        )
    except ValidationError as e:
        return _error(e, 400)
    except OperationalError:
        current_app.logger.warning("Sales list unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200

    return jsonify({
        "items": [s.to_dict(include_items=include_items) for s in sales],
        "count": len(sales),
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_shop
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(shop=g.shop, sale_id=sale_id)
    except NotFoundError as e:
        return _error(e, 404)
    except ShopAccessError as e:
        return _error(e, 403)
    except OperationalError:
        current_app.logger.warning("Sale lookup failed", exc_info=True)
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(sale.to_dict(include_items=True)), 200
