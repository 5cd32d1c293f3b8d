from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..stock_status import status_sql_expression
from ..time_utils import to_utc_z

# Upper bound of a 32-bit signed INTEGER column
MAX_QUANTITY = 2_147_483_647


def format_price(value: Decimal | None) -> str | None:
    """Fixed-point price as a two-decimal string ("12.50")."""
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class Category(db.Model):
    """
    Product grouping. Deleting a category detaches its products
    (category_id -> NULL); it never deletes them.
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=False, default="", server_default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    products = db.relationship("Product", back_populates="category", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Catalog item with its current on-hand quantity.

    QUANTITY: authoritative current stock. Every change goes through the stock
    ledger (see services/stock_service.py) so that the sum of ledger movements
    equals quantity.

    STATUS: generated by the database from quantity (see stock_status.py).
    It is read-only: the ORM never writes it and the API never accepts it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint(f"quantity <= {MAX_QUANTITY}", name="ck_products_quantity_max"),
        db.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False, unique=True)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # decimal(10,2)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"), server_default="0")
    quantity = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    status = db.Column(
        db.String(16),
        db.Computed(status_sql_expression("quantity"), persisted=True),
        index=True,
    )

    description = db.Column(db.Text, nullable=False, default="", server_default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", back_populates="products")

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self, *, include_category: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category_id": self.category_id,
            "price": format_price(self.price),
            "quantity": self.quantity,
            "status": self.status,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_category:
            data["category"] = self.category.to_dict() if self.category else None
        return data
