from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z

DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"
DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)


class LedgerImmutableError(Exception):
    """Raised when code tries to modify or delete a stock ledger row."""


class StockTransaction(db.Model):
    """
    Append-only stock ledger entry.

    quantity is always positive; type (IN/OUT) carries the sign.
    Rows are never updated or deleted by the application. They disappear only
    through the database cascade when their product is deleted.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_transactions_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_stock_transactions_type"),
        db.Index("ix_stock_transactions_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(3), nullable=False)
    notes = db.Column(db.Text, nullable=False, default="", server_default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")
    profile = db.relationship("Profile")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == DIRECTION_IN else -self.quantity

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} product_id={self.product_id} {self.type} {self.quantity}>"

    def to_dict(self, *, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "quantity": self.quantity,
            "type": self.type,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_details:
            data["product"] = self.product.to_dict() if self.product else None
            data["profile"] = self.profile.to_dict() if self.profile else None
        return data


@event.listens_for(StockTransaction, "before_update")
def _block_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(f"Stock transaction {target.id} is immutable and cannot be modified")


@event.listens_for(StockTransaction, "before_delete")
def _block_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Stock transaction {target.id} is immutable and cannot be deleted")
