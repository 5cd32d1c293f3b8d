# Overview: Service-layer operations for the dashboard; read-only aggregates over the catalog.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Category, Product
from ..policy import Action, Resource, authorize
from ..stock_status import LOW_STOCK, OUT_OF_STOCK

RECENT_PRODUCTS_LIMIT = 5


def get_dashboard(context) -> dict:
    """Headline counts plus the most recently created products."""
    authorize(context, Resource.PRODUCT, Action.READ)
    authorize(context, Resource.CATEGORY, Action.READ)

    by_status = dict(
        db.session.query(Product.status, func.count(Product.id))
        .group_by(Product.status)
        .all()
    )
    total_products = sum(by_status.values())
    total_categories = db.session.query(func.count(Category.id)).scalar() or 0

    recent = (
        db.session.query(Product)
        .options(joinedload(Product.category))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(RECENT_PRODUCTS_LIMIT)
        .all()
    )

    return {
        "stats": {
            "total_products": total_products,
            "low_stock_count": by_status.get(LOW_STOCK, 0),
            "total_categories": total_categories,
            "out_of_stock_count": by_status.get(OUT_OF_STOCK, 0),
        },
        "recent_products": [p.to_dict(include_category=True) for p in recent],
    }
