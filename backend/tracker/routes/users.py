# backend/tracker/routes/users.py
"""
User directory API routes (admins and managers).
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor, require_operation
from ..errors import TrackerError
from ..extensions import db
from ..models import User
from ..services import user_service
from ..services.concurrency import run_in_transaction
from ..validation import USER_POLICY, validate_payload


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.route("", methods=["GET"])
@require_actor
@require_operation("manage_users")
def list_users():
    return jsonify({"users": [u.to_dict() for u in user_service.list_users()]}), 200


@users_bp.route("", methods=["POST"])
@require_actor
@require_operation("manage_users")
def create_user():
    """
    Create a user.

    Request body:
    {
        "username": str,
        "role": "admin" | "manager" | "employee",
        "status": "active" | "deactive" (optional)
    }
    """
    try:
        data = validate_payload(model=User, payload=request.get_json(silent=True), policy=USER_POLICY, partial=False)
        user = run_in_transaction(lambda: user_service.create_user(**data))
        return jsonify(user.to_dict()), 201
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@require_actor
@require_operation("manage_users")
def update_user(user_id: int):
    try:
        data = validate_payload(model=User, payload=request.get_json(silent=True), policy=USER_POLICY, partial=True)
        user = run_in_transaction(lambda: user_service.update_user(user_id, **data))
        return jsonify(user.to_dict()), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500
