# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Invariants (authoritative)

Model:
- products.quantity is the current on-hand count and is never negative
  (CHECK quantity >= 0).
- stock_transactions is the append-only history of every quantity change.
  quantity is positive; type IN adds, type OUT removes.
- SUM(IN) - SUM(OUT) for a product equals its quantity. Every code path that
  changes quantity appends the matching ledger row in the same DB transaction.

Movement (record_movement):
1. Lock the product row (SELECT ... FOR UPDATE where the engine supports it).
2. OUT with quantity > on-hand -> InsufficientStockError, nothing written.
3. Append the ledger row.
4. Apply the delta as a conditional UPDATE (OUT: WHERE quantity >= q), so a
   concurrent writer that slipped past step 2 still cannot overdraw.
5. Commit both rows together.

Status is generated by the database from quantity; nothing here writes it.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, StockTransaction, DIRECTION_IN, DIRECTION_OUT, DIRECTIONS, MAX_QUANTITY
from ..policy import Action, Resource, authorize
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import PersistenceError, lock_for_update, run_with_retry

DEFAULT_TRANSACTION_LIMIT = 200
MAX_TRANSACTION_LIMIT = 1000


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__("Product not found")


class InsufficientStockError(Exception):
    """OUT movement larger than the quantity on hand."""

    def __init__(self, *, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__("Insufficient stock quantity")


class StockLimitError(ConflictError):
    """IN movement that would push quantity past MAX_QUANTITY."""

    def __init__(self, *, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__("Quantity would exceed the maximum stock level")


def _ledger_balance_expr():
    return func.coalesce(
        func.sum(
            case(
                (StockTransaction.type == DIRECTION_IN, StockTransaction.quantity),
                else_=-StockTransaction.quantity,
            )
        ),
        0,
    )


def append_entry(context, product: Product, direction: str, quantity: int, notes: str | None = None) -> StockTransaction:
    """
    Add a ledger row to the current DB transaction without committing.

    Used by record_movement and by product create/edit when they set
    quantity directly, so the ledger always explains the quantity.
    """
    tx = StockTransaction(
        product_id=product.id,
        user_id=context.profile.id,
        quantity=quantity,
        type=direction,
        notes=(notes or "").strip(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def _apply_delta(product_id: int, direction: str, quantity: int, available: int) -> None:
    query = db.session.query(Product).filter(Product.id == product_id)
    if direction == DIRECTION_OUT:
        query = query.filter(Product.quantity >= quantity)
        new_value = Product.quantity - quantity
    else:
        query = query.filter(Product.quantity <= MAX_QUANTITY - quantity)
        new_value = Product.quantity + quantity

    updated = query.update({Product.quantity: new_value}, synchronize_session=False)
    if updated != 1:
        if direction == DIRECTION_OUT:
            raise InsufficientStockError(product_id=product_id, available=available, requested=quantity)
        raise StockLimitError(product_id=product_id, available=available, requested=quantity)


def record_movement(
    context,
    *,
    product_id: int,
    direction: str,
    quantity: int,
    notes: str | None = None,
) -> tuple[Product, StockTransaction]:
    """
    Record an IN/OUT movement and update the product quantity atomically.

    Returns (product, transaction) after commit. The product is expired by
    the commit, so its quantity and status reload from the database.

    Raises:
        ValidationError: bad direction or out-of-range quantity
        AuthorizationError: caller is not an active user
        ProductNotFoundError: unknown product_id
        InsufficientStockError: OUT larger than on-hand quantity
        StockLimitError: IN would push quantity past MAX_QUANTITY
        PersistenceError: storage fault (rolled back)
    """
    if direction not in DIRECTIONS:
        raise ValidationError("type must be IN or OUT")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")

    authorize(context, Resource.STOCK_TRANSACTION, Action.CREATE)

    def _op():
        product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
        if product is None:
            raise ProductNotFoundError(product_id)

        available = product.quantity
        if direction == DIRECTION_OUT and available < quantity:
            raise InsufficientStockError(product_id=product_id, available=available, requested=quantity)
        if direction == DIRECTION_IN and available > MAX_QUANTITY - quantity:
            raise StockLimitError(product_id=product_id, available=available, requested=quantity)

        tx = append_entry(context, product, direction, quantity, notes)
        _apply_delta(product_id, direction, quantity, available)
        db.session.commit()
        return product, tx, available

    try:
        product, tx, previous = run_with_retry(_op)
    except (ProductNotFoundError, InsufficientStockError, StockLimitError) as exc:
        db.session.rollback()
        if not isinstance(exc, ProductNotFoundError):
            current_app.logger.warning(
                "Rejected %s movement: product=%s requested=%s available=%s",
                direction, exc.product_id, exc.requested, exc.available,
            )
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to record stock movement for product %s", product_id)
        raise PersistenceError("Failed to record transaction") from exc

    current_app.logger.info(
        "Stock %s product=%s qty=%s by profile=%s (%s -> %s)",
        direction, product_id, quantity, context.profile.id, previous, product.quantity,
    )
    return product, tx


def receive_stock(context, *, product_id: int, quantity: int, notes: str | None = None):
    return record_movement(context, product_id=product_id, direction=DIRECTION_IN, quantity=quantity, notes=notes)


def issue_stock(context, *, product_id: int, quantity: int, notes: str | None = None):
    return record_movement(context, product_id=product_id, direction=DIRECTION_OUT, quantity=quantity, notes=notes)


def list_transactions(
    context,
    *,
    product_id: int | None = None,
    direction: str | None = None,
    limit: int | None = None,
) -> dict:
    """
    Ledger rows newest first, each with its product and acting profile.

    At most `limit` rows (default 200, max 1000) are returned; `truncated`
    tells the caller that older rows exist beyond the window.
    """
    authorize(context, Resource.STOCK_TRANSACTION, Action.READ)

    if direction is not None and direction not in DIRECTIONS:
        raise ValidationError("type must be IN or OUT")

    if limit is not None and limit < 1:
        raise ValidationError("limit must be >= 1")
    limit = min(limit or DEFAULT_TRANSACTION_LIMIT, MAX_TRANSACTION_LIMIT)

    query = db.session.query(StockTransaction).options(
        joinedload(StockTransaction.product),
        joinedload(StockTransaction.profile),
    )
    if product_id is not None:
        query = query.filter(StockTransaction.product_id == product_id)
    if direction is not None:
        query = query.filter(StockTransaction.type == direction)

    rows = (
        query.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .limit(limit + 1)
        .all()
    )
    truncated = len(rows) > limit
    rows = rows[:limit]

    return {
        "items": [tx.to_dict(include_details=True) for tx in rows],
        "count": len(rows),
        "limit": limit,
        "truncated": truncated,
    }


def ledger_balance(product_id: int) -> int:
    """SUM(IN) - SUM(OUT) over the product's ledger rows."""
    value = (
        db.session.query(_ledger_balance_expr())
        .filter(StockTransaction.product_id == product_id)
        .scalar()
    )
    return int(value or 0)


def reconcile(context=None) -> dict:
    """
    Compare each product's quantity with its ledger balance.

    context=None is the trusted CLI path; HTTP callers pass their session.
    """
    if context is not None:
        authorize(context, Resource.PRODUCT, Action.READ)
        authorize(context, Resource.STOCK_TRANSACTION, Action.READ)

    balance = _ledger_balance_expr().label("ledger_balance")
    rows = (
        db.session.query(Product.id, Product.sku, Product.name, Product.quantity, balance)
        .outerjoin(StockTransaction, StockTransaction.product_id == Product.id)
        .group_by(Product.id, Product.sku, Product.name, Product.quantity)
        .order_by(Product.sku.asc())
        .all()
    )

    items = []
    for row in rows:
        ledger = int(row.ledger_balance or 0)
        items.append({
            "product_id": row.id,
            "sku": row.sku,
            "name": row.name,
            "quantity": row.quantity,
            "ledger_balance": ledger,
            "drift": row.quantity - ledger,
            "consistent": row.quantity == ledger,
        })

    drifted = [item for item in items if not item["consistent"]]
    if drifted:
        current_app.logger.warning("Ledger drift detected on %s product(s)", len(drifted))

    return {
        "items": items,
        "count": len(items),
        "drift_count": len(drifted),
        "consistent": not drifted,
    }
