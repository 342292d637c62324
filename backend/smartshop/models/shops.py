from __future__ import annotations

from ..extensions import db
from smartshop.time_utils import to_utc_z


class Shop(db.Model):
    """
    A user's shop. Root of ownership for products, customers and sales.

    ONE SHOP PER USER: enforced by the unique user_id constraint and checked
    up front by shop_service.create_shop (CONFLICT).
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_shops_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    province = db.Column(db.String(100), nullable=True)
    district = db.Column(db.String(100), nullable=True)
    sub_district = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(10), nullable=True)

    # Printed at the bottom of receipts
    receipt_footer = db.Column(db.String(255), nullable=True)

    # IANA zone used for "today" / "this month" windows; NULL means config default
    timezone = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("User", backref=db.backref("shop", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "province": self.province,
            "district": self.district,
            "sub_district": self.sub_district,
            "postal_code": self.postal_code,
            "receipt_footer": self.receipt_footer,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductShortcut(db.Model):
    """
    Quick-sale buttons on the sales screen, in display order.

    The whole list is replaced at once (shortcut_service.replace_shortcuts),
    so positions are always 0..n-1 without gaps.
    """
    __tablename__ = "product_shortcuts"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "product_id", name="uq_shortcuts_shop_product"),
        db.Index("ix_shortcuts_shop_position", "shop_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    position = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(16), nullable=True)  # e.g. "#6B8E23"

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("shortcuts", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "position": self.position,
            "color": self.color,
        }
