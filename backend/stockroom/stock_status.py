# Overview: Stock status classification derived from on-hand quantity.

"""
Stock status is never stored independently of quantity.

    quantity == 0        -> out_of_stock
    1 <= quantity <= 4   -> low_stock
    quantity >= 5        -> in_stock

The same thresholds drive both the Python classifier and the SQL expression
behind the generated products.status column, so the two cannot drift.
"""
from __future__ import annotations

OUT_OF_STOCK = "out_of_stock"
LOW_STOCK = "low_stock"
IN_STOCK = "in_stock"

# Most severe first
STATUSES = (OUT_OF_STOCK, LOW_STOCK, IN_STOCK)

LOW_STOCK_THRESHOLD = 5


def classify(quantity: int) -> str:
    """Map a non-negative on-hand quantity to its stock status."""
    if quantity == 0:
        return OUT_OF_STOCK
    if quantity < LOW_STOCK_THRESHOLD:
        return LOW_STOCK
    return IN_STOCK


def severity(status: str) -> int:
    """Higher is worse: out_of_stock=2, low_stock=1, in_stock=0."""
    return len(STATUSES) - 1 - STATUSES.index(status)


def status_sql_expression(column: str = "quantity") -> str:
    """SQL CASE used by the generated status column."""
    return (
        f"CASE WHEN {column} = 0 THEN '{OUT_OF_STOCK}' "
        f"WHEN {column} < {LOW_STOCK_THRESHOLD} THEN '{LOW_STOCK}' "
        f"ELSE '{IN_STOCK}' END"
    )
