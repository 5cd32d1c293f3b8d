# Overview: Flask API routes for categories; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, service_errors
from ..models import Category
from ..services import category_service
from ..validation import ModelValidationPolicy, validate_payload

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


@categories_bp.get("")
@require_auth
@service_errors
def list_categories_route():
    items = category_service.list_categories(g.session_context)
    return jsonify({"items": items, "count": len(items)})


@categories_bp.get("/<int:category_id>")
@require_auth
@service_errors
def get_category_route(category_id: int):
    category = category_service.get_category(g.session_context, category_id)
    return jsonify(category.to_dict())


@categories_bp.post("")
@require_auth
@service_errors
def create_category_route():
    patch = validate_payload(
        model=Category,
        payload=request.get_json(silent=True),
        policy=CATEGORY_POLICY,
        partial=False,
    )
    category = category_service.create_category(g.session_context, patch=patch)
    return jsonify(category.to_dict()), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@service_errors
def update_category_route(category_id: int):
    patch = validate_payload(
        model=Category,
        payload=request.get_json(silent=True),
        policy=CATEGORY_POLICY,
        partial=True,
    )

    category = category_service.update_category(g.session_context, category_id=category_id, patch=patch)
    return jsonify(category.to_dict())


@categories_bp.delete("/<int:category_id>")
@require_auth
@service_errors
def delete_category_route(category_id: int):
    detached = category_service.delete_category(g.session_context, category_id=category_id)
    return jsonify({"deleted": True, "detached_products": detached})
