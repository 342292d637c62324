from __future__ import annotations

from ..extensions import db
from smartshop.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data with running debt balance.

    Customers are scoped to shops via shop_id.

    Denormalized aggregates (never client-writable):
    - total_debt_cents: increased by credit sales, decreased by debt payments
    - total_paid_cents: sum of debt payments
    Both move in the same transaction as the Sale / DebtTransaction that
    causes them, so total_debt == sum(sale debt) - sum(payments).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_shop_active", "shop_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    province = db.Column(db.String(100), nullable=True)
    district = db.Column(db.String(100), nullable=True)

    # Optional credit ceiling; exceeding it raises a critical notification
    debt_limit_cents = db.Column(db.Integer, nullable=True)

    total_debt_cents = db.Column(db.Integer, nullable=False, default=0)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "province": self.province,
            "district": self.district,
            "debt_limit_cents": self.debt_limit_cents,
            "total_debt_cents": self.total_debt_cents,
            "total_paid_cents": self.total_paid_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class DebtTransaction(db.Model):
    """
    Append-only ledger of customer debt payments.

    debt_amount_cents is the customer's outstanding debt at the moment the
    payment was taken; paid_amount_cents is what was paid.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "debt_transactions"
    __table_args__ = (
        db.Index("ix_debt_txns_customer_paid", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    debt_amount_cents = db.Column(db.Integer, nullable=False)
    paid_amount_cents = db.Column(db.Integer, nullable=False)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")  # cash, transfer, check, other
    notes = db.Column(db.Text, nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("debt_transactions", lazy=True))
    sale = db.relationship("Sale")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "debt_amount_cents": self.debt_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_debt_cents": self.debt_amount_cents - self.paid_amount_cents,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "recorded_by_user_id": self.recorded_by_user_id,
        }
