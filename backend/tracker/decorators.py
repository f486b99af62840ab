# Overview: Request decorators that resolve the acting user and gate routes by role.

from functools import wraps
from flask import request, jsonify, g

from .errors import NotFoundError
from .services import user_service
from .services.access_service import can_perform

ACTOR_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_actor(f):
    """
    Resolve the acting user and place it on g.current_user.

    Authentication itself happens upstream (gateway / login front end); it
    forwards the authenticated user id in the X-User-Id header.

    Returns 401 if the header is missing, malformed or names no user.
    Returns 403 if the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        try:
            user_id = int(raw)
        except ValueError:
            return jsonify({"error": f"Invalid {ACTOR_HEADER} header"}), 401

        try:
            user = user_service.get_user(user_id)
        except NotFoundError:
            return jsonify({"error": "Unknown user"}), 401
        if not user.is_active:
            return jsonify({
                "error": "Your account has been deactivated. Please contact an administrator.",
                "kind": "UnauthorizedError",
            }), 403

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_operation(operation: str):
    """
    Require the acting user's role to be allowed to run an operation.

    The services check again on their own; this just answers early with a
    clean 403 before any body parsing happens.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_actor was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not can_perform(g.current_user, operation):
                return jsonify({
                    "error": "Permission denied",
                    "required_operation": operation,
                    "kind": "UnauthorizedError",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
