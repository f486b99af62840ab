# backend/tracker/routes/items.py
"""
Item API routes: catalogue reads, admin edits, archive/restore, and the
per-item request queue and history.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_operation
from ..errors import TrackerError
from ..extensions import db
from ..models import Item
from ..services import arbitration_service, item_service
from ..services.read_models import history_views, item_view, item_views, request_views
from ..validation import ITEM_POLICY, validate_payload


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


def _truthy(value: str | None) -> bool:
    return (value or "").lower() in {"1", "true", "yes"}


@items_bp.route("", methods=["GET"])
@require_actor
def list_items():
    """
    List items, newest first.

    Query params:
        status: exact status filter (archived included when asked for)
        q: free-text search over material, description and serial number
        include_archived: "1" to include archived items without a status filter
    """
    try:
        items = item_service.list_items(
            status=request.args.get("status") or None,
            search=request.args.get("q") or None,
            include_archived=_truthy(request.args.get("include_archived")),
        )
        return jsonify({"items": item_views(items)}), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.route("/search", methods=["GET"])
@require_actor
def search_items():
    term = (request.args.get("q") or "").strip()
    if not term:
        return jsonify({"items": []}), 200
    limit = current_app.config.get("TRACKER_SEARCH_LIMIT", 10)
    return jsonify({"items": item_views(item_service.search_items(term, limit=limit))}), 200


@items_bp.route("", methods=["POST"])
@require_actor
@require_operation("create_item")
def create_item():
    """
    Register a new item.

    Request body:
    {
        "material": str,
        "serial_number": str,
        "description": str (optional)
    }

    Returns:
        201: Item created
        400: Invalid payload
        409: Serial number already exists
    """
    try:
        patch = validate_payload(model=Item, payload=request.get_json(silent=True), policy=ITEM_POLICY, partial=False)
        item = arbitration_service.create_item(
            g.current_user,
            material=patch["material"],
            serial_number=patch["serial_number"],
            description=patch.get("description"),
        )
        return jsonify(item_view(item)), 201
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.route("/<int:item_id>", methods=["GET"])
@require_actor
def get_item(item_id: int):
    try:
        return jsonify(item_view(item_service.get_item(item_id))), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.route("/<int:item_id>", methods=["PATCH"])
@require_actor
@require_operation("edit_item")
def edit_item(item_id: int):
    try:
        patch = validate_payload(model=Item, payload=request.get_json(silent=True), policy=ITEM_POLICY, partial=True)
        item = arbitration_service.edit_item(item_id, patch, g.current_user)
        return jsonify(item_view(item)), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to edit item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@items_bp.route("/<int:item_id>/archive", methods=["POST"])
@require_actor
@require_operation("archive_item")
def archive_item(item_id: int):
    """
    Archive an item.

    Request body: {"reason": str}

    Returns:
        200: Item archived
        404: Item not found
        409: Item in use or already archived
    """
    data = request.get_json(silent=True) or {}
    try:
        item = arbitration_service.archive_item(item_id, data.get("reason"), g.current_user)
        return jsonify(item_view(item)), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to archive item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@items_bp.route("/<int:item_id>/restore", methods=["POST"])
@require_actor
@require_operation("restore_item")
def restore_item(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = arbitration_service.restore_item(item_id, g.current_user, reason=data.get("reason"))
        return jsonify(item_view(item)), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to restore item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@items_bp.route("/<int:item_id>/history", methods=["GET"])
@require_actor
@require_operation("list_history")
def item_history(item_id: int):
    try:
        entries = arbitration_service.list_history(item_id, g.current_user)
        return jsonify({"history": history_views(entries)}), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.route("/<int:item_id>/requests", methods=["GET"])
@require_actor
def item_requests(item_id: int):
    try:
        pending = arbitration_service.list_pending_for_item(item_id, g.current_user)
        return jsonify({"requests": request_views(pending, include_item=False)}), 200
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.route("/<int:item_id>/requests", methods=["POST"])
@require_actor
def submit_request(item_id: int):
    """
    Ask to borrow or return an item.

    Request body: {"type": "use" | "return"}

    Returns:
        201: Request queued
        403: Only the borrower may return
        404: Item not found
        409: Item not in a requestable state, or duplicate request
    """
    data = request.get_json(silent=True) or {}
    try:
        req = arbitration_service.submit_request(item_id, g.current_user, data.get("type"))
        return jsonify(request_views([req])[0]), 201
    except TrackerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to submit request for item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500
