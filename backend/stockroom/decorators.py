# Overview: Request decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .policy import AuthorizationError
from .services import session_service
from .services.concurrency import PersistenceError
from .services.stock_service import InsufficientStockError, StockLimitError
from .validation import ConflictError, NotFoundError, ValidationError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish the session context.

    Sets:
    - g.session_context: SessionContext passed on to every service call

    Returns 401 if the Authorization header is missing or the token is
    invalid, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def service_errors(f):
    """
    Translate service exceptions into JSON error responses.

    Authorization and storage failures get generic messages; the detail is
    already in the log. Validation, conflict and stock messages are shown
    verbatim.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except AuthorizationError:
            return jsonify({"error": "You do not have permission to perform this operation"}), 403
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except (InsufficientStockError, StockLimitError) as e:
            return jsonify({
                "error": str(e),
                "available": e.available,
                "requested": e.requested,
            }), 409
        except ConflictError as e:
            return jsonify({"error": str(e)}), 409
        except PersistenceError:
            return jsonify({"error": "Operation failed. Please try again."}), 500

    return decorated_function


def unexpected_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
