# backend/stockroom/routes/products.py
"""
Product API routes.

status is generated by the database from quantity and is never accepted in
a payload. Setting quantity here is an opening balance (create) or a
stock-take correction (update); both are written through the stock ledger.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, service_errors
from ..models import Product
from ..services import products_service
from ..validation import ModelValidationPolicy, enforce_rules_product, parse_int_arg, validate_payload

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "category_id", "price", "quantity", "description"},
    required_on_create={"name", "sku"},
)


def _int_arg(name: str) -> int | None:
    return parse_int_arg(name, request.args.get(name))


@products_bp.get("")
@require_auth
@service_errors
def list_products_route():
    """
    List products with optional filters.

    Query params:
    - search: substring of name or SKU (case-insensitive)
    - category_id, status: equality filters
    - page, per_page: pagination (per_page max 100)
    """
    result = products_service.list_products(
        g.session_context,
        search=request.args.get("search") or None,
        category_id=_int_arg("category_id"),
        status=request.args.get("status") or None,
        page=_int_arg("page"),
        per_page=_int_arg("per_page"),
    )
    return jsonify(result)


@products_bp.get("/<int:product_id>")
@require_auth
@service_errors
def get_product_route(product_id: int):
    product = products_service.get_product(g.session_context, product_id)
    return jsonify(product.to_dict(include_category=True))


@products_bp.post("")
@require_auth
@service_errors
def create_product_route():
    patch = validate_payload(
        model=Product,
        payload=request.get_json(silent=True),
        policy=PRODUCT_POLICY,
        partial=False,
    )
    enforce_rules_product(patch)

    product = products_service.create_product(g.session_context, patch=patch)
    return jsonify(product.to_dict(include_category=True)), 201


@products_bp.put("/<int:product_id>")
@require_auth
@service_errors
def update_product_route(product_id: int):
    patch = validate_payload(
        model=Product,
        payload=request.get_json(silent=True),
        policy=PRODUCT_POLICY,
        partial=True,
    )
    enforce_rules_product(patch)

    product = products_service.update_product(g.session_context, product_id=product_id, patch=patch)
    return jsonify(product.to_dict(include_category=True))


@products_bp.delete("/<int:product_id>")
@require_auth
@service_errors
def delete_product_route(product_id: int):
    products_service.delete_product(g.session_context, product_id=product_id)
    return jsonify({"deleted": True})
