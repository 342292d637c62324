"""
Price change tests: the product price and its history row move together.
"""

import pytest

from smartshop.models import PriceHistory, Product


class TestChangePrice:

    def test_change_updates_product_and_appends_history(self, client, headers_a, user_a, product_a, db_session):
        resp = client.post("/api/price-history", json={
            "product_id": product_a.id,
            "old_price_cents": 150,
            "new_price_cents": 180,
            "notes": "Supplier increase",
        }, headers=headers_a)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["product"]["selling_price_cents"] == 180
        assert data["entry"]["old_price_cents"] == 150
        assert data["entry"]["new_price_cents"] == 180
        assert data["entry"]["changed_by_user_id"] == user_a.id
        assert data["entry"]["notes"] == "Supplier increase"

        assert db_session.get(Product, product_a.id).selling_price_cents == 180

    def test_stale_old_price_conflicts(self, client, headers_a, product_a, db_session):
        resp = client.post("/api/price-history", json={
            "product_id": product_a.id,
            "old_price_cents": 120,
            "new_price_cents": 180,
        }, headers=headers_a)
        assert resp.status_code == 409
        assert db_session.get(Product, product_a.id).selling_price_cents == 150
        assert db_session.query(PriceHistory).count() == 0

    def test_unchanged_price_writes_nothing(self, client, headers_a, product_a, db_session):
        resp = client.post("/api/price-history", json={"product_id": product_a.id, "new_price_cents": 150}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["entry"] is None
        assert db_session.query(PriceHistory).count() == 0

    def test_missing_fields(self, client, headers_a, product_a):
        resp = client.post("/api/price-history", json={"product_id": product_a.id}, headers=headers_a)
        assert resp.status_code == 400

    def test_negative_price(self, client, headers_a, product_a):
        resp = client.post("/api/price-history", json={"product_id": product_a.id, "new_price_cents": -5}, headers=headers_a)
        assert resp.status_code == 400

    def test_foreign_product_forbidden(self, client, headers_a, shop_a, product_b):
        resp = client.post("/api/price-history", json={"product_id": product_b.id, "new_price_cents": 1}, headers=headers_a)
        assert resp.status_code == 403


class TestListPriceHistory:

    def test_newest_first_and_filtered(self, client, headers_a, shop_a, product_a, db_session):
        other = Product(shop_id=shop_a.id, name="Other", selling_price_cents=500)
        db_session.add(other)
        db_session.commit()

        for price in (160, 170):
            client.post("/api/price-history", json={"product_id": product_a.id, "new_price_cents": price}, headers=headers_a)
        client.post("/api/price-history", json={"product_id": other.id, "new_price_cents": 550}, headers=headers_a)

        all_entries = client.get("/api/price-history", headers=headers_a).get_json()
        assert all_entries["count"] == 3

        resp = client.get(f"/api/price-history?product_id={product_a.id}", headers=headers_a)
        entries = resp.get_json()["items"]
        assert [e["new_price_cents"] for e in entries] == [170, 160]

    def test_other_shops_history_hidden(self, client, headers_a, headers_b, product_a, product_b):
        client.post("/api/price-history", json={"product_id": product_b.id, "new_price_cents": 2100}, headers=headers_b)

        assert client.get("/api/price-history", headers=headers_a).get_json()["count"] == 0
        resp = client.get(f"/api/price-history?product_id={product_b.id}", headers=headers_a)
        assert resp.status_code == 403


class TestMalformedPriceChange:

    @pytest.mark.parametrize("body", [[1], "new price"])
    def test_non_object_body_rejected(self, client, headers_a, product_a, body, db_session):
        resp = client.post("/api/price-history", json=body, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid JSON payload"
        assert db_session.query(PriceHistory).count() == 0
