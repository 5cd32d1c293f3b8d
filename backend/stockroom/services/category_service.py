# Overview: Service-layer operations for categories; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product
from ..policy import Action, Resource, authorize
from ..validation import ConflictError, NotFoundError
from .concurrency import commit_or_fail

CATEGORY_MUTABLE_FIELDS = {"name", "description"}

DEFAULT_CATEGORIES = (
    ("Electronics", "Electronic devices and accessories"),
    ("Furniture", "Office and home furniture"),
    ("Stationery", "Office supplies and stationery"),
    ("Hardware", "Tools and hardware supplies"),
    ("Consumables", "Consumable items and supplies"),
)


def _require_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category name already exists.")


def list_categories(context) -> list[dict]:
    """Categories ordered by name, each with the number of products in it."""
    authorize(context, Resource.CATEGORY, Action.READ)

    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(Category).order_by(Category.name.asc()).all()

    result = []
    for category in categories:
        data = category.to_dict()
        data["product_count"] = counts.get(category.id, 0)
        result.append(data)
    return result


def get_category(context, category_id: int) -> Category:
    authorize(context, Resource.CATEGORY, Action.READ)
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def create_category(context, *, patch: dict) -> Category:
    authorize(context, Resource.CATEGORY, Action.CREATE, changes=patch)
    _require_unique_name(patch["name"])

    category = Category(name=patch["name"], description=patch.get("description") or "")
    db.session.add(category)
    commit_or_fail("Failed to create category")
    current_app.logger.info("Created category id=%s name=%s", category.id, category.name)
    return category


def update_category(context, *, category_id: int, patch: dict) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    authorize(context, Resource.CATEGORY, Action.UPDATE, row=category, changes=patch)

    if "name" in patch and patch["name"] != category.name:
        _require_unique_name(patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    commit_or_fail("Failed to update category")
    return category


def delete_category(context, *, category_id: int) -> int:
    """
    Delete a category and detach its products.

    Returns the number of products whose category_id was cleared.
    """
    authorize(context, Resource.CATEGORY, Action.DELETE)

    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    detached = (
        db.session.query(Product)
        .filter(Product.category_id == category_id)
        .update({Product.category_id: None}, synchronize_session="fetch")
    )
    db.session.delete(category)
    commit_or_fail("Failed to delete category")
    current_app.logger.info("Deleted category id=%s, detached %s product(s)", category_id, detached)
    return detached


def seed_default_categories() -> int:
    """Insert the stock categories that are missing. Returns how many were added."""
    existing = {name for (name,) in db.session.query(Category.name).all()}
    added = 0
    for name, description in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        db.session.add(Category(name=name, description=description))
        added += 1
    db.session.commit()
    return added
