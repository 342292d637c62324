from __future__ import annotations

from ..extensions import db
from smartshop.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data.

    Products are scoped to shops via shop_id.

    STOCK: current_stock is an integer >= 0. It changes only through
    explicit stock operations (products_service.adjust_stock, a product
    update that sets current_stock) or, when DECREMENT_STOCK_ON_SALE is
    enabled, through sale creation.

    PRICES: Authoritative storage in cents (frontend may only format for display).
    selling_price_cents changes are always logged to PriceHistory.
    """
    __tablename__ = "products"
    __table_args__ = (
        # Codes are optional, but unique within a shop when set
        db.UniqueConstraint("shop_id", "code", name="uq_products_shop_code"),
        db.Index("ix_products_shop_name", "shop_id", "name"),
        db.Index("ix_products_shop_active", "shop_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(100), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(50), nullable=True)  # e.g. "kg", "litre", "bag"

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        from smartshop.analytics import stock_level

        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "code": self.code,
            "category": self.category,
            "unit": self.unit,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "current_stock": self.current_stock,
            "minimum_stock": self.minimum_stock,
            "stock_level": stock_level(self.current_stock, self.minimum_stock),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceHistory(db.Model):
    """
    Append-only log of selling-price changes.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        db.Index("ix_price_history_product_changed", "product_id", "change_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    old_price_cents = db.Column(db.Integer, nullable=False)
    new_price_cents = db.Column(db.Integer, nullable=False)

    changed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    change_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("price_history", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "old_price_cents": self.old_price_cents,
            "new_price_cents": self.new_price_cents,
            "changed_by_user_id": self.changed_by_user_id,
            "change_date": to_utc_z(self.change_date),
            "notes": self.notes,
        }
