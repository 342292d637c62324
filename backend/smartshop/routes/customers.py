# Overview: Flask API routes for customers and their running debt totals.

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import OperationalError

from ..services import customer_service
from ..services.shop_service import ShopAccessError
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_shop

# total_debt_cents / total_paid_cents are not client-writable
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_shop
def list_customers():
    """
    Query params:
    - include_inactive: "1"/"true" to include deactivated customers
    - q: substring match on name or phone
    - with_debt: "1"/"true" for customers with outstanding debt only
    """
    truthy = {"1", "true", "yes"}
    try:
        customers = customer_service.list_customers(
            shop=g.shop,
            include_inactive=request.args.get("include_inactive", "").lower() in truthy,
            search=request.args.get("q"),
            with_debt_only=request.args.get("with_debt", "").lower() in truthy,
        )
    except OperationalError:
        current_app.logger.warning("Customer list unavailable; returning empty list", exc_info=True)
        return jsonify({"items": [], "count": 0, "degraded": True}), 200

    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_auth
@require_shop
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
        customer = customer_service.create_customer(shop=g.shop, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OperationalError:
        current_app.logger.exception("Database unavailable while creating customer")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_shop
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(shop=g.shop, customer_id=customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.warning("Customer lookup failed", exc_info=True)
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(customer.to_dict()), 200


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_shop
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        customer = customer_service.update_customer(shop=g.shop, customer_id=customer_id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ShopAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OperationalError:
        current_app.logger.exception("Database unavailable while updating customer")
        return jsonify({"error": "Service unavailable"}), 503

    return jsonify(customer.to_dict()), 200
