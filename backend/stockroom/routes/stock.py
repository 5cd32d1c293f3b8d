# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

"""
Stock ledger API

- GET  /transactions      ledger rows, newest first
- POST /transactions      record an IN/OUT movement
- GET  /reconciliation    quantity vs ledger balance per product

Ledger rows are immutable: there are no update or delete routes.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, service_errors
from ..models import StockTransaction
from ..services import stock_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_stock_movement,
    parse_int_arg,
    validate_payload,
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "type", "quantity", "notes"},
    required_on_create={"product_id", "type", "quantity"},
)


def _int_arg(name: str) -> int | None:
    return parse_int_arg(name, request.args.get(name))


@stock_bp.get("/transactions")
@require_auth
@service_errors
def list_transactions_route():
    direction = request.args.get("type")
    result = stock_service.list_transactions(
        g.session_context,
        product_id=_int_arg("product_id"),
        direction=direction.upper() if direction else None,
        limit=_int_arg("limit"),
    )
    return jsonify(result)


@stock_bp.post("/transactions")
@require_auth
@service_errors
def create_transaction_route():
    """
    Record a stock movement.

    Request body:
    {
        "product_id": 1,
        "type": "IN" | "OUT",
        "quantity": 5,
        "notes": "optional"
    }

    Returns 201 with the ledger row and the product's new quantity and status.
    An OUT larger than the quantity on hand returns 409 and writes nothing.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and isinstance(payload.get("type"), str):
        payload = {**payload, "type": payload["type"].strip().upper()}

    patch = validate_payload(
        model=StockTransaction,
        payload=payload,
        policy=MOVEMENT_POLICY,
        partial=False,
    )
    enforce_rules_stock_movement(patch)

    product, tx = stock_service.record_movement(
        g.session_context,
        product_id=patch["product_id"],
        direction=patch["type"],
        quantity=patch["quantity"],
        notes=patch.get("notes"),
    )
    return jsonify({
        "transaction": tx.to_dict(),
        "product": product.to_dict(),
    }), 201


@stock_bp.get("/reconciliation")
@require_auth
@service_errors
def reconciliation_route():
    return jsonify(stock_service.reconcile(g.session_context))
