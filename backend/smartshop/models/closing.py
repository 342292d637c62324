from __future__ import annotations

from ..extensions import db
from smartshop.time_utils import to_utc_z


class DailyClose(db.Model):
    """
    End-of-day cash close for one shop-local calendar day.

    Totals are derived from the day's recorded sales at close time.
    cash_variance_cents = counted_cash_cents - total_cash_cents when the
    drawer was counted.

    IMMUTABLE: one row per (shop, business_date), never updated.
    """
    __tablename__ = "daily_closes"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "business_date", name="uq_daily_closes_shop_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    business_date = db.Column(db.Date, nullable=False, index=True)
    close_date = db.Column(db.DateTime(timezone=True), nullable=False)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    total_transfer_cents = db.Column(db.Integer, nullable=False, default=0)
    total_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)

    counted_cash_cents = db.Column(db.Integer, nullable=True)
    cash_variance_cents = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("daily_closes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "business_date": self.business_date.isoformat(),
            "close_date": to_utc_z(self.close_date),
            "total_sales_cents": self.total_sales_cents,
            "total_cash_cents": self.total_cash_cents,
            "total_transfer_cents": self.total_transfer_cents,
            "total_credit_cents": self.total_credit_cents,
            "total_transactions": self.total_transactions,
            "counted_cash_cents": self.counted_cash_cents,
            "cash_variance_cents": self.cash_variance_cents,
            "notes": self.notes,
            "closed_by_user_id": self.closed_by_user_id,
        }
