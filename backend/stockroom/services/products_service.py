# backend/stockroom/services/products_service.py
"""
Products Service

Every entry point takes the caller's SessionContext and runs the access
policy before touching the store.

QUANTITY: create and edit may set quantity directly (opening balance,
stock-take correction). Those changes are written through the stock ledger in
the same DB transaction, so the ledger always explains the quantity.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Category, Product, DIRECTION_IN, DIRECTION_OUT
from ..policy import Action, Resource, authorize
from ..stock_status import STATUSES
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import commit_or_fail, lock_for_update
from .stock_service import append_entry

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "category_id", "price", "description"}

OPENING_BALANCE_NOTE = "Opening balance"
CORRECTION_NOTE = "Manual quantity correction"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise ValidationError("category_id does not reference an existing category")


def _require_unique_sku(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists.")


def list_products(
    context,
    *,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing, newest first, with optional filters and pagination.

    search: case-insensitive substring of name or SKU
    category_id / status: equality filters

    Returns a dict with 'items', 'count', and pagination metadata if paginated.
    """
    authorize(context, Resource.PRODUCT, Action.READ)

    if status is not None and status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
    if page is not None and page < 1:
        raise ValidationError("page must be >= 1")
    if per_page is not None and per_page < 1:
        raise ValidationError("per_page must be >= 1")

    base_query = db.session.query(Product).options(joinedload(Product.category))

    if search:
        needle = search.strip().lower()
        base_query = base_query.filter(
            or_(
                func.lower(Product.name).contains(needle, autoescape=True),
                func.lower(Product.sku).contains(needle, autoescape=True),
            )
        )
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if status is not None:
        base_query = base_query.filter(Product.status == status)

    base_query = base_query.order_by(Product.created_at.desc(), Product.id.desc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict(include_category=True) for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict(include_category=True) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(context, product_id: int) -> Product:
    authorize(context, Resource.PRODUCT, Action.READ)
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(context, *, patch: dict) -> Product:
    """
    Create a product from a validated patch.

    A non-zero quantity becomes an "Opening balance" IN row on the ledger.

    Raises:
        AuthorizationError: caller is not an active user
        ConflictError: SKU already exists
        ValidationError: category_id does not exist
    """
    authorize(context, Resource.PRODUCT, Action.CREATE, changes=patch)

    _require_unique_sku(patch["sku"])
    _require_category(patch.get("category_id"))

    opening = patch.get("quantity") or 0

    p = Product(quantity=0)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.flush()  # ensure p.id exists before ledger append

    if opening > 0:
        p.quantity = opening
        append_entry(context, p, DIRECTION_IN, opening, OPENING_BALANCE_NOTE)

    commit_or_fail("Failed to create product")
    current_app.logger.info("Created product id=%s sku=%s by profile=%s", p.id, p.sku, context.profile.id)
    return p


def update_product(context, *, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    A changed quantity is recorded as an IN/OUT correction for the
    difference before the new value is stored.

    Raises NotFoundError, AuthorizationError, ConflictError, ValidationError.
    """
    p = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
    if p is None:
        raise NotFoundError("Product not found")

    authorize(context, Resource.PRODUCT, Action.UPDATE, row=p, changes=patch)

    if "sku" in patch and patch["sku"] != p.sku:
        _require_unique_sku(patch["sku"], exclude_id=p.id)
    if "category_id" in patch:
        _require_category(patch["category_id"])

    if "quantity" in patch and patch["quantity"] != p.quantity:
        delta = patch["quantity"] - p.quantity
        direction = DIRECTION_IN if delta > 0 else DIRECTION_OUT
        append_entry(context, p, direction, abs(delta), CORRECTION_NOTE)
        p.quantity = patch["quantity"]

    apply_product_patch(p, patch)
    commit_or_fail("Failed to update product")
    current_app.logger.info(
        "Updated product id=%s fields=%s by profile=%s",
        p.id, ",".join(sorted(patch.keys())), context.profile.id,
    )
    return p


def delete_product(context, *, product_id: int) -> None:
    """
    Delete a product (admin only). Its ledger rows go with it through the
    ON DELETE CASCADE on stock_transactions.product_id.
    """
    authorize(context, Resource.PRODUCT, Action.DELETE)

    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found")

    sku = p.sku
    db.session.delete(p)
    commit_or_fail("Failed to delete product")
    current_app.logger.info("Deleted product id=%s sku=%s by profile=%s", product_id, sku, context.profile.id)
