# Overview: Flask API routes for customer debt payments.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import debt_service
from ..services.debt_service import DebtPaymentError
from ..services.shop_service import ShopAccessError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_shop

debt_transactions_bp = Blueprint("debt_transactions", __name__, url_prefix="/api/debt-transactions")


@debt_transactions_bp.get("")
@require_auth
@require_shop
def list_debt_transactions_route():
    """Newest first; optional ?customer_id= filter."""
    customer_id = request.args.get("customer_id", type=int)
    try:
        txns = debt_service.list_transactions(shop=g.shop, customer_id=customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.warning("Debt transactions unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200

    return jsonify({"items": [t.to_dict() for t in txns], "count": len(txns)}), 200


@debt_transactions_bp.post("")
@require_auth
@require_shop
def record_payment_route():
    payload = request.get_json(silent=True) or {}

    try:
        txn = debt_service.record_payment(shop=g.shop, payload=payload, user_id=g.current_user.id)
    except (ValidationError, DebtPaymentError) as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.exception("Database unavailable while recording debt payment")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify({
        "transaction": txn.to_dict(),
        "customer": txn.customer.to_dict(),
    }), 201
