# backend/tracker/routes/pending.py
"""
Pending request API routes: the approval dashboard and the approve/reject
decisions.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_operation
from ..errors import TrackerError
from ..extensions import db
from ..models.users import ROLE_EMPLOYEE
from ..services import arbitration_service, request_queue_service
from ..services.read_models import grouped_request_views, item_view, request_views


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.route("", methods=["GET"])
@require_actor
@require_operation("view_requests")
def list_requests():
    """
    All open requests, newest first. Employees only ever see their own;
    admins and managers may pass mine=1 to narrow to theirs.
    """
    user = g.current_user
    if user.role == ROLE_EMPLOYEE or request.args.get("mine") in {"1", "true"}:
        pending = request_queue_service.list_by_user(user.id)
    else:
        pending = request_queue_service.list_all()
    return jsonify({"requests": request_views(pending)}), 200


@requests_bp.route("/grouped", methods=["GET"])
@require_actor
@require_operation("view_dashboard")
def grouped_requests():
    grouped = request_queue_service.group_by_item_and_type()
    return jsonify({"groups": grouped_request_views(grouped)}), 200


@requests_bp.route("/stats", methods=["GET"])
@require_actor
@require_operation("view_dashboard")
def request_stats():
    return jsonify(request_queue_service.request_statistics()), 200


@requests_bp.route("/<int:request_id>/approve", methods=["POST"])
@require_actor
@require_operation("approve_request")
def approve_request(request_id: int):
    """
    Approve a request. Every other open request for the item is rejected.

    Returns:
        200: Approved; body is the updated item
        404: Request not found
        409: Request already resolved by another decision, or item state changed
        503: Storage failure (nothing was written)
    """
    try:
        item = arbitration_service.approve_request(request_id, g.current_user)
        return jsonify(item_view(item)), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve request %s", request_id)
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.route("/<int:request_id>/reject", methods=["POST"])
@require_actor
@require_operation("reject_request")
def reject_request(request_id: int):
    try:
        arbitration_service.reject_request(request_id, g.current_user)
        return jsonify({"status": "rejected", "request_id": request_id}), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject request %s", request_id)
        return jsonify({"error": "Internal server error"}), 500
