# Overview: Service-layer operations for customer debt payments.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Customer, DebtTransaction, Sale, Shop
from ..validation import ValidationError, check_amount, coerce_int
from .concurrency import lock_for_update, run_with_retry
from .shop_service import ShopAccessError, get_owned
from smartshop.time_utils import utcnow

DEBT_PAYMENT_METHODS = ("cash", "transfer", "check", "other")


class DebtPaymentError(Exception):
    """Raised when a payment doesn't fit the customer's outstanding debt."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def record_payment(*, shop: Shop, payload: dict, user_id: int | None = None) -> DebtTransaction:
    """
    Record a debt payment.

    In one transaction: append the DebtTransaction (with the outstanding
    debt snapshot) and move customer.total_debt_cents / total_paid_cents.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if payload.get("customer_id") is None:
        raise ValidationError("customer_id is required")
    if payload.get("paid_amount_cents") is None:
        raise ValidationError("paid_amount_cents is required")

    customer_id = coerce_int("customer_id", payload["customer_id"])
    paid = coerce_int("paid_amount_cents", payload["paid_amount_cents"])
    check_amount("paid_amount_cents", paid)
    if paid <= 0:
        raise ValidationError("paid_amount_cents must be > 0")

    sale_id = payload.get("sale_id")
    if sale_id is not None:
        sale_id = coerce_int("sale_id", sale_id)

    method = payload.get("payment_method") or "cash"
    if method not in DEBT_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(DEBT_PAYMENT_METHODS)}")

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    def _op():
        customer = get_owned(
            Customer, customer_id, shop, label="Customer",
            query=lock_for_update(db.session.query(Customer)),
        )
        if sale_id is not None:
            sale = get_owned(Sale, sale_id, shop, label="Sale")
            if sale.customer_id != customer.id:
                raise ShopAccessError("Sale belongs to another customer")

        outstanding = customer.total_debt_cents or 0
        if paid > outstanding:
            raise DebtPaymentError(
                "Payment exceeds outstanding debt",
                details={"paid_amount_cents": paid, "total_debt_cents": outstanding},
            )

        txn = DebtTransaction(
            customer_id=customer.id,
            sale_id=sale_id,
            debt_amount_cents=outstanding,
            paid_amount_cents=paid,
            payment_date=utcnow(),
            payment_method=method,
            notes=notes,
            recorded_by_user_id=user_id,
        )
        customer.total_debt_cents = outstanding - paid
        customer.total_paid_cents = (customer.total_paid_cents or 0) + paid
        db.session.add(txn)
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info(
        "Debt payment customer id=%s paid=%s remaining=%s",
        customer_id, paid, txn.debt_amount_cents - paid,
    )
    return txn


def list_transactions(*, shop: Shop, customer_id: int | None = None, limit: int | None = None) -> list[DebtTransaction]:
    """Newest first, scoped to the shop's customers."""
    if limit is None:
        limit = current_app.config.get("DEBT_TRANSACTION_LIMIT", 50)

    query = (
        db.session.query(DebtTransaction)
        .join(Customer, Customer.id == DebtTransaction.customer_id)
        .filter(Customer.shop_id == shop.id)
    )
    if customer_id is not None:
        get_owned(Customer, customer_id, shop, label="Customer")
        query = query.filter(DebtTransaction.customer_id == customer_id)

    return (
        query.order_by(DebtTransaction.payment_date.desc(), DebtTransaction.id.desc())
        .limit(limit)
        .all()
    )
