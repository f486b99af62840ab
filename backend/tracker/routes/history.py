# backend/tracker/routes/history.py
"""
Global activity feed. Per-item history lives under /api/items/<id>/history.
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor, require_operation
from ..services import history_service
from ..services.read_models import history_views


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


@history_bp.route("/recent", methods=["GET"])
@require_actor
@require_operation("view_dashboard")
def recent_history():
    default_limit = current_app.config.get("TRACKER_RECENT_HISTORY_LIMIT", 50)
    try:
        limit = int(request.args.get("limit", default_limit))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    limit = max(1, min(limit, 500))
    return jsonify({"history": history_views(history_service.list_recent(limit))}), 200
