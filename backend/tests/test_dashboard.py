"""
Dashboard tests.

Day and month windows follow the shop's local calendar; an unreachable
database yields a zeroed payload flagged as degraded.
"""

from sqlalchemy.exc import OperationalError

from smartshop.models import Customer, Product
from smartshop.services import dashboard_service


def record(client, headers, product, *, when, method="cash", quantity=1, customer_id=None, paid=None):
    payload = {
        "payment_method": method,
        "sale_date": when,
        "items": [{"product_id": product.id, "quantity": quantity}],
    }
    if customer_id is not None:
        payload["customer_id"] = customer_id
    if paid is not None:
        payload["paid_amount_cents"] = paid
    resp = client.post("/api/sales", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestDashboardStats:

    def test_day_totals_by_payment_method(self, client, headers_a, customer_a, product_a):
        record(client, headers_a, product_a, when="2026-03-15T02:00:00Z", method="cash")
        record(client, headers_a, product_a, when="2026-03-15T03:00:00Z", method="transfer", quantity=2)
        record(client, headers_a, product_a, when="2026-03-15T04:00:00Z", method="credit",
               customer_id=customer_a.id, paid=0)

        resp = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["degraded"] is False
        today = data["today_stats"]
        assert today["cash_sales_cents"] == 150
        assert today["transfer_sales_cents"] == 300
        assert today["credit_sales_cents"] == 150
        assert today["total_sales_cents"] == 600
        assert today["total_paid_cents"] == 450
        assert today["total_debt_cents"] == 150
        assert today["transactions"] == 3
        assert today["by_payment_method"]["transfer"]["count"] == 1
        assert data["total_sales_cents"] == 600

    def test_day_window_is_inclusive_to_last_millisecond(self, client, headers_a, product_a):
        record(client, headers_a, product_a, when="2026-03-15T00:00:00Z")
        record(client, headers_a, product_a, when="2026-03-15T23:59:59.999Z")
        record(client, headers_a, product_a, when="2026-03-16T00:00:00Z")
        record(client, headers_a, product_a, when="2026-03-14T23:59:59.999Z")

        data = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a).get_json()
        assert data["today_stats"]["transactions"] == 2
        assert data["today_stats"]["total_sales_cents"] == 300

    def test_monthly_total(self, client, headers_a, product_a):
        record(client, headers_a, product_a, when="2026-03-01T00:00:00Z")
        record(client, headers_a, product_a, when="2026-03-31T23:59:59Z", quantity=2)
        record(client, headers_a, product_a, when="2026-04-01T00:00:00Z", quantity=5)

        data = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a).get_json()
        assert data["monthly_sales_cents"] == 450
        assert data["today_stats"]["transactions"] == 0

    def test_shop_timezone_moves_day_boundary(self, client, headers_a, shop_a, product_a, db_session):
        shop_a.timezone = "Asia/Bangkok"
        db_session.commit()

        # 18:00 UTC on the 14th is 01:00 on the 15th in Bangkok
        record(client, headers_a, product_a, when="2026-03-14T18:00:00Z")

        data = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a).get_json()
        assert data["timezone"] == "Asia/Bangkok"
        assert data["today_stats"]["transactions"] == 1

        data = client.get("/api/dashboard/stats?date=2026-03-14", headers=headers_a).get_json()
        assert data["today_stats"]["transactions"] == 0

    def test_other_shops_sales_excluded(self, client, headers_a, headers_b, product_a, product_b):
        record(client, headers_b, product_b, when="2026-03-15T05:00:00Z")
        data = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a).get_json()
        assert data["today_stats"]["total_sales_cents"] == 0

    def test_bad_date(self, client, headers_a, shop_a):
        resp = client.get("/api/dashboard/stats?date=15/03/2026", headers=headers_a)
        assert resp.status_code == 400

    def test_degraded_when_database_unavailable(self, client, headers_a, product_a, monkeypatch):
        record(client, headers_a, product_a, when="2026-03-15T05:00:00Z")

        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(dashboard_service, "sales_in_window", unavailable)
        resp = client.get("/api/dashboard/stats?date=2026-03-15", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["degraded"] is True
        assert data["monthly_sales_cents"] == 0
        assert data["total_sales_cents"] == 0
        assert data["today_stats"]["transactions"] == 0
        assert data["today_stats"]["by_payment_method"]["cash"]["total_cents"] == 0


class TestInsights:

    def test_insights(self, client, headers_a, shop_a, customer_a, product_a, db_session):
        bag = Product(shop_id=shop_a.id, name="Fertilizer bag", selling_price_cents=1000,
                      current_stock=2, minimum_stock=2)
        db_session.add(bag)
        db_session.commit()

        record(client, headers_a, product_a, when="2026-03-02T05:00:00Z", quantity=1)
        record(client, headers_a, bag, when="2026-03-03T05:00:00Z", quantity=3,
               customer_id=customer_a.id, paid=1000)
        record(client, headers_a, product_a, when="2026-02-10T05:00:00Z", quantity=10)

        resp = client.get("/api/dashboard/insights?date=2026-03-15", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()

        assert [p["id"] for p in data["low_stock"]] == [bag.id]
        assert [c["id"] for c in data["top_debtors"]] == [customer_a.id]
        assert data["top_products"][0] == {
            "product_id": bag.id,
            "product_name": "Fertilizer bag",
            "quantity": 3,
            "revenue_cents": 3000,
        }
        assert data["monthly_sales_cents"] == 3150
        assert data["previous_month_sales_cents"] == 1500
        assert data["month_over_month_percent"] == 110.0

    def test_limit_bounds(self, client, headers_a, shop_a):
        assert client.get("/api/dashboard/insights?limit=0", headers=headers_a).status_code == 400
        assert client.get("/api/dashboard/insights?limit=51", headers=headers_a).status_code == 400


class TestReports:

    def test_monthly_profit(self, client, headers_a, shop_a, product_a):
        # product_a sells at 150 with a cost price of 100
        record(client, headers_a, product_a, when="2026-03-02T05:00:00Z", quantity=2)
        record(client, headers_a, product_a, when="2026-03-20T05:00:00Z", quantity=1)
        record(client, headers_a, product_a, when="2026-02-10T05:00:00Z", quantity=1)

        resp = client.get("/api/dashboard/reports?date=2026-03-15", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["month"] == "2026-03"
        assert data["degraded"] is False

        summary = data["summary"]
        assert summary["total_sales_cents"] == 450
        assert summary["total_cost_cents"] == 300
        assert summary["total_profit_cents"] == 150
        assert summary["profit_margin_percent"] == 33.33
        assert summary["transactions"] == 2
        assert summary["average_transaction_cents"] == 225
        assert summary["by_product"][0]["product_name"] == "Test Product"
        assert summary["by_product"][0]["quantity"] == 3

        assert len(data["daily"]) == 31
        assert data["daily"][1] == {"date": "2026-03-02", "sales_cents": 300, "profit_cents": 100, "transactions": 1}
        assert data["daily"][0]["sales_cents"] == 0

    def test_bad_date(self, client, headers_a, shop_a):
        assert client.get("/api/dashboard/reports?date=nope", headers=headers_a).status_code == 400

    def test_degraded_when_database_unavailable(self, client, headers_a, shop_a, monkeypatch):
        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(dashboard_service, "sales_in_window", unavailable)
        resp = client.get("/api/dashboard/reports?date=2026-02-15", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["degraded"] is True
        assert data["summary"]["total_profit_cents"] == 0
        assert len(data["daily"]) == 28


class TestNotifications:

    def test_critical_first(self, client, headers_a, shop_a, db_session):
        db_session.add_all([
            Product(shop_id=shop_a.id, name="Running low", current_stock=4, minimum_stock=5),
            Product(shop_id=shop_a.id, name="Almost gone", current_stock=1, minimum_stock=5),
            Product(shop_id=shop_a.id, name="Plenty", current_stock=50, minimum_stock=5),
            Customer(shop_id=shop_a.id, name="Over limit", total_debt_cents=900, debt_limit_cents=500),
        ])
        db_session.commit()

        resp = client.get("/api/dashboard/notifications", headers=headers_a)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["count"] == 3
        assert data["critical_count"] == 2
        assert [n["severity"] for n in data["items"]] == ["critical", "critical", "warning"]
        assert {n["type"] for n in data["items"]} == {"low_stock", "overdue_debt"}
