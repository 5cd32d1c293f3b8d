# Overview: Flask API route resolving a client path to a view for the caller.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..navigation import ROUTES, ViewRouter, can_view

navigation_bp = Blueprint("navigation", __name__, url_prefix="/api/navigation")


@navigation_bp.get("")
@require_auth
def navigation_route():
    """
    Resolve ?path= to a view. Unknown paths resolve to the dashboard.

    The users view resolves with allowed=false for non-admins; the client
    shows "Access Denied" there.
    """
    profile = g.session_context.profile
    router = ViewRouter(profile)
    resolution = router.navigate(request.args.get("path"))

    menu = [
        {"view": view.value, "path": path}
        for path, view in ROUTES.items()
        if can_view(view, profile)
    ]
    return jsonify({**resolution.to_dict(), "menu": menu})
