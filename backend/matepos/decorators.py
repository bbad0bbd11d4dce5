# Overview: Request decorators for API routes (operator identity, error mapping).

from functools import wraps

from flask import current_app, g, jsonify, request

from .services.errors import BackendFailure, InsufficientFunds, PaymentSplitMismatch
from .validation import ConflictError, NotFoundError, ValidationError
from .values import money_str


USER_HEADER = "X-User-Id"


def require_user(f):
    """
    Require an operator identity.

    The auth provider sits in front of this service and forwards the
    authenticated operator id in the X-User-Id header. Sets g.user_id.

    Returns 401 when the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get(USER_HEADER) or "").strip()
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function


def _error_body(exc: Exception) -> dict:
    body = {"error": str(exc)}
    if isinstance(exc, PaymentSplitMismatch):
        body["details"] = {
            "items_total": money_str(exc.items_total),
            "splits_total": money_str(exc.splits_total),
        }
    elif isinstance(exc, InsufficientFunds):
        body["details"] = {
            "payment_method": exc.method,
            "requested": money_str(exc.requested),
            "available": money_str(exc.available),
        }
    return body


def json_errors(action: str):
    """
    Map service errors to JSON responses.

    - ValidationError -> 400
    - NotFoundError   -> 404
    - ConflictError   -> 409 (includes SaleStateError)
    - BackendFailure  -> its status code, fixed user message
    - anything else   -> logged, 500
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ValidationError as e:
                return jsonify(_error_body(e)), 400
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404
            except ConflictError as e:
                return jsonify({"error": str(e)}), 409
            except BackendFailure as e:
                return jsonify({"error": e.user_message}), e.status_code
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
