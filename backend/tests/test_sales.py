"""
Sale recording tests.

Covers:
- One Sale and N SaleItems per request, written atomically
- Server-derived amounts (supplied totals are cross-checked)
- Customer debt moves with credit sales
- Idempotent replay by idempotency_key
- Optional stock decrement (DECREMENT_STOCK_ON_SALE)
"""

import pytest
from sqlalchemy.exc import OperationalError

from smartshop.models import Customer, Product, Sale, SaleItem
from smartshop.services import sales_service
from smartshop.services.sales_service import SaleError, reconcile_amounts
from smartshop.validation import ValidationError


def cash_sale(product, **overrides):
    payload = {
        "payment_method": "cash",
        "total_amount_cents": "150",
        "paid_amount_cents": "150",
        "debt_amount_cents": "0",
        "items": [{
            "product_id": product.id,
            "quantity": "1",
            "unit_price_cents": "150",
            "line_total_cents": "150",
        }],
    }
    payload.update(overrides)
    return payload


class TestCreateSale:

    def test_cash_sale(self, client, headers_a, customer_a, product_a):
        resp = client.post("/api/sales", json=cash_sale(product_a, customer_id=customer_a.id), headers=headers_a)
        assert resp.status_code == 201
        sale = resp.get_json()
        assert sale["total_amount_cents"] == 150
        assert sale["payment_method"] == "cash"
        assert len(sale["items"]) == 1
        assert sale["items"][0]["product_name"] == "Test Product"

        listed = client.get("/api/sales", headers=headers_a).get_json()
        assert sale["id"] in [s["id"] for s in listed["items"]]

    def test_credit_sale_adds_customer_debt(self, client, headers_a, customer_a, product_a, db_session):
        payload = {
            "customer_id": customer_a.id,
            "payment_method": "credit",
            "total_amount_cents": "300",
            "paid_amount_cents": "0",
            "debt_amount_cents": "300",
            "items": [{"product_id": product_a.id, "quantity": "2", "unit_price_cents": "150", "line_total_cents": "300"}],
        }
        resp = client.post("/api/sales", json=payload, headers=headers_a)
        assert resp.status_code == 201
        assert resp.get_json()["debt_amount_cents"] == 300
        assert db_session.get(Customer, customer_a.id).total_debt_cents == 300

    def test_writes_one_sale_and_n_items(self, client, headers_a, shop_a, product_a, db_session):
        second = Product(shop_id=shop_a.id, name="Second", selling_price_cents=200, current_stock=5)
        db_session.add(second)
        db_session.commit()

        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 2},
                {"product_id": second.id, "quantity": 1},
                {"product_id": product_a.id, "quantity": 1, "unit_price_cents": 140},
            ],
        }, headers=headers_a)
        assert resp.status_code == 201
        sale_id = resp.get_json()["id"]

        assert db_session.query(Sale).count() == 1
        items = db_session.query(SaleItem).filter_by(sale_id=sale_id).all()
        assert len(items) == 3
        assert sum(i.line_total_cents for i in items) == 300 + 200 + 140
        assert db_session.get(Sale, sale_id).total_amount_cents == 640

    def test_defaults_to_selling_price_and_full_payment(self, client, headers_a, product_a):
        resp = client.post("/api/sales", json={"items": [{"product_id": product_a.id, "quantity": 3}]}, headers=headers_a)
        assert resp.status_code == 201
        sale = resp.get_json()
        assert sale["total_amount_cents"] == 450
        assert sale["paid_amount_cents"] == 450
        assert sale["debt_amount_cents"] == 0

    def test_sale_date_is_normalized_to_utc(self, client, headers_a, product_a):
        resp = client.post("/api/sales", json=cash_sale(product_a, sale_date="2026-03-15T08:30:00+07:00"), headers=headers_a)
        assert resp.status_code == 201
        assert resp.get_json()["sale_date"] == "2026-03-15T01:30:00Z"


class TestSaleValidation:
    """Inconsistent or incomplete input is rejected and nothing is written."""

    def test_future_business_day_rejected(self, client, headers_a, product_a, db_session):
        resp = client.post("/api/sales", json=cash_sale(product_a, sale_date="2999-01-01T00:00:00Z"), headers=headers_a)
        assert resp.status_code == 400
        assert db_session.query(Sale).count() == 0

    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"total_amount_cents": "200"}, "total_amount_cents"),
            ({"paid_amount_cents": "100"}, "debt_amount_cents"),
            ({"payment_method": "barter"}, "payment_method"),
            ({"items": []}, "items"),
        ],
    )
    def test_rejected(self, client, headers_a, customer_a, product_a, db_session, overrides, fragment):
        payload = cash_sale(product_a, customer_id=customer_a.id, **overrides)
        resp = client.post("/api/sales", json=payload, headers=headers_a)
        assert resp.status_code == 400
        assert fragment in resp.get_json()["error"]
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_line_total_mismatch(self, client, headers_a, product_a, db_session):
        payload = cash_sale(product_a)
        payload["items"][0]["line_total_cents"] = "999"
        resp = client.post("/api/sales", json=payload, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["details"]["expected"] == 150

    def test_debt_requires_customer(self, client, headers_a, product_a, db_session):
        payload = cash_sale(product_a, paid_amount_cents="0", debt_amount_cents="150")
        resp = client.post("/api/sales", json=payload, headers=headers_a)
        assert resp.status_code == 400
        assert db_session.query(Sale).count() == 0

    def test_zero_quantity(self, client, headers_a, product_a):
        resp = client.post("/api/sales", json={"items": [{"product_id": product_a.id, "quantity": 0}]}, headers=headers_a)
        assert resp.status_code == 400

    def test_inactive_product(self, client, headers_a, product_a, db_session):
        product_a.is_active = False
        db_session.commit()
        resp = client.post("/api/sales", json=cash_sale(product_a), headers=headers_a)
        assert resp.status_code == 400

    def test_inactive_customer(self, client, headers_a, customer_a, product_a, db_session):
        customer_a.is_active = False
        db_session.commit()
        resp = client.post("/api/sales", json=cash_sale(product_a, customer_id=customer_a.id), headers=headers_a)
        assert resp.status_code == 400

    def test_foreign_product_forbidden(self, client, headers_a, shop_a, product_b, db_session):
        resp = client.post("/api/sales", json={"items": [{"product_id": product_b.id, "quantity": 1}]}, headers=headers_a)
        assert resp.status_code == 403
        assert db_session.query(Sale).count() == 0

    def test_foreign_customer_forbidden(self, client, headers_a, product_a, customer_b):
        resp = client.post("/api/sales", json=cash_sale(product_a, customer_id=customer_b.id), headers=headers_a)
        assert resp.status_code == 403

    def test_unknown_product(self, client, headers_a, shop_a):
        resp = client.post("/api/sales", json={"items": [{"product_id": 777777, "quantity": 1}]}, headers=headers_a)
        assert resp.status_code == 404


class TestIdempotency:

    def test_replay_returns_same_sale(self, client, headers_a, customer_a, product_a, db_session):
        payload = cash_sale(product_a, customer_id=customer_a.id, idempotency_key="till-1-0001")

        first = client.post("/api/sales", json=payload, headers=headers_a)
        second = client.post("/api/sales", json=payload, headers=headers_a)

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.get_json()["id"] == second.get_json()["id"]
        assert db_session.query(Sale).count() == 1
        assert db_session.query(SaleItem).count() == 1

    def test_replayed_credit_sale_counts_debt_once(self, client, headers_a, customer_a, product_a, db_session):
        payload = cash_sale(
            product_a,
            customer_id=customer_a.id,
            payment_method="credit",
            paid_amount_cents="0",
            debt_amount_cents="150",
            idempotency_key="till-1-0002",
        )
        client.post("/api/sales", json=payload, headers=headers_a)
        client.post("/api/sales", json=payload, headers=headers_a)
        assert db_session.get(Customer, customer_a.id).total_debt_cents == 150

    def test_key_too_long(self, client, headers_a, product_a):
        resp = client.post("/api/sales", json=cash_sale(product_a, idempotency_key="k" * 65), headers=headers_a)
        assert resp.status_code == 400


class TestStockDecrement:

    def test_stock_untouched_by_default(self, client, headers_a, product_a, db_session):
        client.post("/api/sales", json=cash_sale(product_a), headers=headers_a)
        assert db_session.get(Product, product_a.id).current_stock == 10

    def test_stock_decremented_when_enabled(self, app, client, headers_a, product_a, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "DECREMENT_STOCK_ON_SALE", True)
        resp = client.post("/api/sales", json={"items": [{"product_id": product_a.id, "quantity": 4}]}, headers=headers_a)
        assert resp.status_code == 201
        assert db_session.get(Product, product_a.id).current_stock == 6

    def test_insufficient_stock_rejected(self, app, client, headers_a, product_a, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "DECREMENT_STOCK_ON_SALE", True)
        resp = client.post("/api/sales", json={"items": [
            {"product_id": product_a.id, "quantity": 6},
            {"product_id": product_a.id, "quantity": 5},
        ]}, headers=headers_a)
        assert resp.status_code == 400
        short = resp.get_json()["details"]["items"][0]
        assert short == {"product_id": product_a.id, "requested_quantity": 11, "on_hand": 10}
        assert db_session.query(Sale).count() == 0
        assert db_session.get(Product, product_a.id).current_stock == 10


class TestListAndGet:

    def test_newest_first_and_filters(self, client, headers_a, customer_a, product_a):
        client.post("/api/sales", json=cash_sale(product_a, sale_date="2026-03-14T10:00:00Z"), headers=headers_a)
        client.post("/api/sales", json=cash_sale(
            product_a, customer_id=customer_a.id, payment_method="transfer", sale_date="2026-03-15T10:00:00Z",
        ), headers=headers_a)

        items = client.get("/api/sales", headers=headers_a).get_json()["items"]
        assert [s["sale_date"] for s in items] == ["2026-03-15T10:00:00Z", "2026-03-14T10:00:00Z"]
        assert "items" not in items[0]

        by_day = client.get("/api/sales?date=2026-03-14", headers=headers_a).get_json()
        assert by_day["count"] == 1

        by_method = client.get("/api/sales?payment_method=transfer", headers=headers_a).get_json()
        assert by_method["items"][0]["customer_id"] == customer_a.id

        by_customer = client.get(f"/api/sales?customer_id={customer_a.id}&include_items=1", headers=headers_a).get_json()
        assert by_customer["count"] == 1
        assert len(by_customer["items"][0]["items"]) == 1

    def test_search(self, client, headers_a, customer_a, product_a, db_session, shop_a):
        rice = Product(shop_id=shop_a.id, name="Jasmine Rice", selling_price_cents=500)
        db_session.add(rice)
        db_session.commit()

        client.post("/api/sales", json=cash_sale(product_a, sale_date="2026-03-14T10:00:00Z"), headers=headers_a)
        client.post("/api/sales", json={
            "customer_id": customer_a.id,
            "sale_date": "2026-03-15T10:00:00Z",
            "items": [{"product_id": rice.id, "quantity": 1}],
        }, headers=headers_a)

        def dates(query):
            items = client.get("/api/sales", query_string={"q": query}, headers=headers_a).get_json()["items"]
            return [s["sale_date"][:10] for s in items]

        assert dates("jasmine") == ["2026-03-15"]
        assert dates("test cust") == ["2026-03-15"]
        assert dates("test product") == ["2026-03-14"]
        assert dates("2026-03-14") == ["2026-03-14"]
        assert dates("nothing") == []

    def test_list_capped(self, app, client, headers_a, product_a, monkeypatch):
        monkeypatch.setitem(app.config, "SALES_LIST_LIMIT", 2)
        for _ in range(3):
            client.post("/api/sales", json=cash_sale(product_a), headers=headers_a)
        assert client.get("/api/sales", headers=headers_a).get_json()["count"] == 2

    def test_bad_payment_method_filter(self, client, headers_a, shop_a):
        resp = client.get("/api/sales?payment_method=barter", headers=headers_a)
        assert resp.status_code == 400

    def test_get_includes_items(self, client, headers_a, product_a):
        sale_id = client.post("/api/sales", json=cash_sale(product_a), headers=headers_a).get_json()["id"]
        resp = client.get(f"/api/sales/{sale_id}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["items"][0]["quantity"] == 1

    def test_get_foreign_sale_forbidden(self, client, headers_a, headers_b, product_a, product_b):
        sale_id = client.post("/api/sales", json={"items": [{"product_id": product_b.id, "quantity": 1}]}, headers=headers_b).get_json()["id"]
        resp = client.get(f"/api/sales/{sale_id}", headers=headers_a)
        assert resp.status_code == 403


    def test_get_unavailable_is_503(self, client, headers_a, shop_a, monkeypatch):
        def unavailable(**kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(sales_service, "get_sale", unavailable)
        resp = client.get("/api/sales/1", headers=headers_a)
        assert resp.status_code == 503

class TestReconcileAmounts:

    def test_paid_defaults_to_total(self):
        assert reconcile_amounts([100, 50], total=None, paid=None, debt=None) == (150, 150, 0)

    def test_paid_derived_from_debt(self):
        assert reconcile_amounts([100, 50], total=150, paid=None, debt=50) == (150, 100, 50)

    def test_overpayment_rejected(self):
        with pytest.raises(SaleError):
            reconcile_amounts([100], total=None, paid=101, debt=None)

    def test_service_rejects_non_dict(self, db_session, shop_a):
        with pytest.raises(ValidationError, match="Invalid JSON payload"):
            sales_service.create_sale(shop=shop_a, payload=["not", "a", "dict"])
