# Overview: Flask API routes for dashboard read models.

from flask import Blueprint, request, jsonify, g

from ..services import dashboard_service
from ..validation import ValidationError
from ..decorators import require_auth, require_shop

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_shop
def stats_route():
    """
    Today's totals by payment method plus the month's sales.

    Query params:
    - date: YYYY-MM-DD or ISO datetime (default: today in the shop's timezone)
    """
    try:
        stats = dashboard_service.get_dashboard_stats(shop=g.shop, date_value=request.args.get("date"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(stats), 200


@dashboard_bp.get("/insights")
@require_auth
@require_shop
def insights_route():
    limit = request.args.get("limit", default=5, type=int)
    if limit < 1 or limit > 50:
        return jsonify({"error": "limit must be between 1 and 50"}), 400
    try:
        insights = dashboard_service.get_insights(
            shop=g.shop,
            date_value=request.args.get("date"),
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(insights), 200


@dashboard_bp.get("/notifications")
@require_auth
@require_shop
def notifications_route():
    items = dashboard_service.get_notifications(shop=g.shop)
    critical = sum(1 for n in items if n["severity"] == "critical")
    return jsonify({"items": items, "count": len(items), "critical_count": critical}), 200


@dashboard_bp.get("/reports")
@require_auth
@require_shop
def reports_route():
    """
    Sales and profit for the shop-local month containing ?date (default: today).

    Profit per line is the line total minus quantity times the product's cost price.
    """
    try:
        report = dashboard_service.get_reports(shop=g.shop, date_value=request.args.get("date"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200
