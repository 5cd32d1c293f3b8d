# Overview: Flask API route for the dashboard summary.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth, service_errors
from ..services.dashboard_service import get_dashboard

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@service_errors
def dashboard_route():
    return jsonify(get_dashboard(g.session_context))
