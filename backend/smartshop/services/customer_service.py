# Overview: Service-layer operations for customers; debt totals are only moved by sales and payments.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Shop
from .concurrency import lock_for_update, run_with_retry
from .shop_service import get_owned

# total_debt_cents / total_paid_cents move only through sales and debt payments
CUSTOMER_MUTABLE_FIELDS = {
    "name", "phone", "address", "province", "district", "debt_limit_cents", "is_active",
}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def list_customers(
    *,
    shop: Shop,
    include_inactive: bool = False,
    search: str | None = None,
    with_debt_only: bool = False,
) -> list[Customer]:
    query = db.session.query(Customer).filter(Customer.shop_id == shop.id)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    if with_debt_only:
        query = query.filter(Customer.total_debt_cents > 0)
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(*, shop: Shop, customer_id: int) -> Customer:
    return get_owned(Customer, customer_id, shop, label="Customer")


def create_customer(*, shop: Shop, patch: dict) -> Customer:
    c = Customer(shop_id=shop.id, total_debt_cents=0, total_paid_cents=0)
    apply_customer_patch(c, patch)
    db.session.add(c)
    db.session.commit()
    return c


def update_customer(*, shop: Shop, customer_id: int, patch: dict) -> Customer:
    def _op():
        c = get_owned(
            Customer, customer_id, shop, label="Customer",
            query=lock_for_update(db.session.query(Customer)),
        )
        apply_customer_patch(c, patch)
        db.session.commit()
        return c

    return run_with_retry(_op)
