# Overview: Flask API routes for user profiles; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, service_errors
from ..models import Profile
from ..services import profile_service
from ..validation import ModelValidationPolicy, enforce_rules_profile, validate_payload

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "role", "is_active"},
    required_on_create={"name"},
)


@users_bp.get("")
@require_auth
@service_errors
def list_users_route():
    profiles = profile_service.list_profiles(g.session_context)
    return jsonify({"items": [p.to_dict() for p in profiles], "count": len(profiles)})


@users_bp.get("/<int:profile_id>")
@require_auth
@service_errors
def get_user_route(profile_id: int):
    profile = profile_service.get_profile(g.session_context, profile_id)
    return jsonify(profile.to_dict())


@users_bp.patch("/<int:profile_id>")
@require_auth
@service_errors
def update_user_route(profile_id: int):
    """
    Update a profile.

    Staff may only rename themselves; admins may also set role and
    is_active on other profiles.
    """
    patch = validate_payload(
        model=Profile,
        payload=request.get_json(silent=True),
        policy=PROFILE_POLICY,
        partial=True,
    )
    enforce_rules_profile(patch)

    profile = profile_service.update_profile(g.session_context, profile_id=profile_id, patch=patch)
    return jsonify(profile.to_dict())
