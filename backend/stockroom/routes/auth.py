# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /register creates an account and its staff profile
- POST /login returns a bearer token
- POST /logout revokes it
- GET /me returns the caller's account, profile and capabilities
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import bearer_token, require_auth, service_errors, unexpected_error
from ..policy import capabilities
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
@service_errors
def register_route():
    """
    Self-registration. The new profile is always staff and active.

    Request body: email, password, name (optional, defaults to "User").
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.register_user(email=email, password=password, name=data.get("name"))

    return jsonify({"user": user.to_dict(), "profile": user.profile.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password must be strings"}), 400

        user = auth_service.authenticate(email, password)
        if not user or user.profile is None:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "token": token,
            "user": user.to_dict(),
            "profile": user.profile.to_dict(),
            "capabilities": capabilities(user.profile),
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        return unexpected_error("Failed to login user")


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token."""
    token = bearer_token()
    if token is None:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "profile": context.profile.to_dict(),
        "capabilities": capabilities(context.profile),
    }), 200
