# Overview: Request Arbitration Engine. Every item status change happens here.

"""
Material Tracker Request Arbitration Engine

================================================================================
PURPOSE: Decide who gets an item, and record every decision
================================================================================

ITEM STATES (derived from Item.status):
    AVAILABLE --approve(use)--> USED --approve(return)--> AVAILABLE
    AVAILABLE --archive--> ARCHIVED --restore--> AVAILABLE

    USED cannot be archived directly; the borrower must return it first.

RULES:
1. Submitting a request never changes item status. Only approval does.
2. One open request per (item, user, type).
3. "use" requests are accepted only for available items.
4. "return" requests are accepted only from the current borrower.
5. Approval is a manual single-winner arbitration. The approver's chosen
   request wins, every other open request for the item loses (regardless of
   type), and the item's queue ends empty. There is no FIFO.
6. Each public operation is one transaction: the item update, all history
   rows and the queue deletes commit together or not at all.

CONCURRENCY:
Two admins approving different requests for the same item race on the item
row. The version_id compare-and-swap lets exactly one UPDATE through. The
loser's transaction is retried from scratch, finds its request already
deleted, and fails with RequestNoLongerPendingError instead of allocating
the item twice.
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..errors import (
    InvalidStateError,
    NotAuthorizedForReturnError,
    NotFoundError,
    RequestNoLongerPendingError,
    ValidationError,
)
from ..extensions import db
from ..models import HistoryEntry, Item, PendingRequest
from ..models.history import (
    ACTION_ARCHIVED,
    ACTION_BORROWED,
    ACTION_CREATED,
    ACTION_EDITED,
    ACTION_REJECTED,
    ACTION_REQUESTED_BORROW,
    ACTION_REQUESTED_RETURN,
    ACTION_RETURNED,
)
from ..models.items import ITEM_STATUS_ARCHIVED, ITEM_STATUS_AVAILABLE, ITEM_STATUS_USED
from ..models.pending import REQUEST_TYPE_RETURN, REQUEST_TYPE_USE, VALID_REQUEST_TYPES
from . import history_service, item_service, request_queue_service, user_service
from .access_service import authorize
from .concurrency import run_in_transaction


def _request_noun(request_type: str) -> str:
    return "borrow" if request_type == REQUEST_TYPE_USE else "return"


def submit_request(item_id: int, actor, request_type: str) -> PendingRequest:
    """
    Queue a borrow ("use") or return request for an item.

    Raises:
        UnauthorizedError: actor inactive
        ValidationError: unknown request type
        NotFoundError: unknown item
        InvalidStateError: item archived, or not available for a "use" request
        NotAuthorizedForReturnError: "return" from anyone but the current borrower
        DuplicateRequestError: actor already has this request open
    """
    authorize(actor, "submit_request")
    if request_type not in VALID_REQUEST_TYPES:
        raise ValidationError(
            f"Invalid request type '{request_type}'. Must be one of: {', '.join(VALID_REQUEST_TYPES)}"
        )
    actor_id = actor.id

    def _op():
        item = item_service.get_item(item_id, for_update=True)

        if item.status == ITEM_STATUS_ARCHIVED:
            raise InvalidStateError(f"Item {item_id} is archived")

        if request_type == REQUEST_TYPE_USE:
            if item.status != ITEM_STATUS_AVAILABLE:
                raise InvalidStateError(
                    f"Item {item_id} is '{item.status}'; only available items can be borrowed"
                )
            action = ACTION_REQUESTED_BORROW
            details = "Requested to borrow item"
        else:
            if item.status != ITEM_STATUS_USED or item.last_used_by != actor_id:
                raise NotAuthorizedForReturnError(
                    "Only the user who borrowed this item can request to return it"
                )
            action = ACTION_REQUESTED_RETURN
            details = "Requested to return item"

        req = request_queue_service.enqueue(item.id, actor_id, request_type)

        # Status is untouched until an admin approves
        history_service.append_history(
            item_id=item.id,
            action=action,
            performed_by=actor_id,
            details=details,
            previous_status=item.status,
            new_status=item.status,
            request_id=req.id,
        )
        return req

    return run_in_transaction(_op)


def _load_request_for_decision(request_id: int) -> PendingRequest:
    req = db.session.query(PendingRequest).filter_by(id=request_id).first()
    if req is not None:
        return req
    if history_service.has_entries_for_request(request_id):
        raise RequestNoLongerPendingError(
            f"Request {request_id} has already been resolved; refresh and decide again"
        )
    raise NotFoundError(f"Request {request_id} not found")


def approve_request(request_id: int, actor) -> Item:
    """
    Approve one request and automatically reject every other open request
    for the same item.

    Steps (one transaction):
    1. Load the chosen request and its item
    2. use -> item 'used' with the requester as borrower;
       return -> item 'available' with no borrower
    3. History 'borrowed' / 'returned' for the winner
    4. History 'rejected' for every other open request, any type
    5. Delete the whole queue for the item

    Raises:
        UnauthorizedError: actor inactive or not an admin
        NotFoundError: request (or its item) does not exist
        RequestNoLongerPendingError: request was resolved by an earlier decision
        InvalidStateError: item status no longer matches the request type
        StorageError: database failure; nothing was written
    """
    authorize(actor, "approve_request")
    approver_id = actor.id

    def _op():
        req = _load_request_for_decision(request_id)
        item = item_service.get_item(req.item_id, for_update=True)
        # A competing approval may have committed between the two reads
        if not request_queue_service.is_open(req.id):
            raise RequestNoLongerPendingError(
                f"Request {request_id} has already been resolved; refresh and decide again"
            )
        previous_status = item.status

        if req.type == REQUEST_TYPE_USE:
            new_status, borrower, expected = ITEM_STATUS_USED, req.requested_by, ITEM_STATUS_AVAILABLE
        else:
            new_status, borrower, expected = ITEM_STATUS_AVAILABLE, None, ITEM_STATUS_USED

        item_service.transition_status(
            item.id,
            new_status,
            changed_by=approver_id,
            last_used_by=borrower,
            expected_status=expected,
        )

        losers = [r for r in request_queue_service.list_for_item(item.id) if r.id != req.id]
        names = user_service.username_map([req.requested_by, *(r.requested_by for r in losers)])
        winner_name = names.get(req.requested_by, f"user {req.requested_by}")

        history_service.append_history(
            item_id=item.id,
            action=ACTION_BORROWED if req.type == REQUEST_TYPE_USE else ACTION_RETURNED,
            performed_by=approver_id,
            details=(
                f"Request approved: item "
                f"{'borrowed' if req.type == REQUEST_TYPE_USE else 'returned'} by {winner_name}"
            ),
            previous_status=previous_status,
            new_status=new_status,
            request_id=req.id,
        )

        for loser in losers:
            loser_name = names.get(loser.requested_by, f"user {loser.requested_by}")
            history_service.append_history(
                item_id=item.id,
                action=ACTION_REJECTED,
                performed_by=approver_id,
                details=(
                    f"Request automatically rejected: {loser_name}'s {_request_noun(loser.type)} "
                    f"request was denied because {winner_name}'s {_request_noun(req.type)} "
                    f"request was approved"
                ),
                previous_status=new_status,
                new_status=new_status,
                request_id=loser.id,
            )

        request_queue_service.remove_all_for_item(item.id)

        current_app.logger.info(
            "Approved request %s and rejected %d other request(s) for item %s",
            req.id, len(losers), item.id,
        )
        return item

    return run_in_transaction(_op)


def reject_request(request_id: int, actor) -> None:
    """
    Reject a single request. The item and the rest of its queue are untouched.

    Raises:
        UnauthorizedError: actor inactive or not an admin
        NotFoundError: no open request with this id (a second reject included)
    """
    authorize(actor, "reject_request")
    rejecter_id = actor.id
    rejecter_name = actor.username

    def _op():
        req = request_queue_service.get_request(request_id)
        item = item_service.get_item(req.item_id)
        requester_name = user_service.username_map([req.requested_by]).get(
            req.requested_by, f"user {req.requested_by}"
        )

        history_service.append_history(
            item_id=item.id,
            action=ACTION_REJECTED,
            performed_by=rejecter_id,
            details=(
                f"Request manually rejected: {requester_name}'s {_request_noun(req.type)} "
                f"request was denied by {rejecter_name}"
            ),
            previous_status=item.status,
            new_status=item.status,
            request_id=req.id,
        )
        request_queue_service.remove_one(req.id)

        current_app.logger.info("Rejected request %s for item %s", req.id, item.id)

    run_in_transaction(_op)


def archive_item(item_id: int, reason: str, actor) -> Item:
    """
    Retire an item. Open requests for it are rejected and removed.

    Raises:
        ValidationError: blank reason
        NotFoundError: unknown item
        InvalidStateError: item is in use or already archived
    """
    authorize(actor, "archive_item")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("An archive reason is required")
    actor_id = actor.id

    def _op():
        item = item_service.get_item(item_id, for_update=True)
        if item.status == ITEM_STATUS_USED:
            raise InvalidStateError(
                f"Item {item_id} is currently in use and cannot be archived until it is returned"
            )
        if item.status == ITEM_STATUS_ARCHIVED:
            raise InvalidStateError(f"Item {item_id} is already archived")

        previous_status = item.status

        open_requests = request_queue_service.list_for_item(item.id)
        names = user_service.username_map(r.requested_by for r in open_requests)
        for req in open_requests:
            history_service.append_history(
                item_id=item.id,
                action=ACTION_REJECTED,
                performed_by=actor_id,
                details=(
                    f"Request automatically rejected: "
                    f"{names.get(req.requested_by, f'user {req.requested_by}')}'s "
                    f"{_request_noun(req.type)} request was denied because the item was archived"
                ),
                previous_status=previous_status,
                new_status=previous_status,
                request_id=req.id,
            )
        request_queue_service.remove_all_for_item(item.id)

        item_service.transition_status(
            item.id,
            ITEM_STATUS_ARCHIVED,
            changed_by=actor_id,
            archived_reason=reason,
            expected_status=previous_status,
        )
        history_service.append_history(
            item_id=item.id,
            action=ACTION_ARCHIVED,
            performed_by=actor_id,
            details=f"Item archived: {reason}",
            previous_status=previous_status,
            new_status=ITEM_STATUS_ARCHIVED,
        )

        current_app.logger.info("Archived item %s (%s)", item.id, reason)
        return item

    return run_in_transaction(_op)


def restore_item(item_id: int, actor, reason: str | None = None) -> Item:
    """
    Bring an archived item back as 'available' with no borrower.

    The audit taxonomy has no 'restored' action, so this is logged as 'edited'.

    Raises:
        NotFoundError: unknown item
        InvalidStateError: item is not archived
    """
    authorize(actor, "restore_item")
    actor_id = actor.id

    def _op():
        item = item_service.get_item(item_id, for_update=True)
        if item.status != ITEM_STATUS_ARCHIVED:
            raise InvalidStateError(f"Item {item_id} is '{item.status}'; only archived items can be restored")

        item_service.transition_status(
            item.id,
            ITEM_STATUS_AVAILABLE,
            changed_by=actor_id,
            last_used_by=None,
            archived_reason=None,
            expected_status=ITEM_STATUS_ARCHIVED,
        )
        details = "Item restored from archive"
        if reason and reason.strip():
            details = f"{details}: {reason.strip()}"
        history_service.append_history(
            item_id=item.id,
            action=ACTION_EDITED,
            performed_by=actor_id,
            details=details,
            previous_status=ITEM_STATUS_ARCHIVED,
            new_status=ITEM_STATUS_AVAILABLE,
        )

        current_app.logger.info("Restored item %s from archive", item.id)
        return item

    return run_in_transaction(_op)


def create_item(actor, material: str, serial_number: str, description: str | None = None) -> Item:
    """Register a new item (status 'available') and log 'created'."""
    authorize(actor, "create_item")
    actor_id = actor.id

    def _op():
        item = item_service.create_item(
            material, serial_number, description, changed_by=actor_id
        )
        history_service.append_history(
            item_id=item.id,
            action=ACTION_CREATED,
            performed_by=actor_id,
            details="Item created in system",
            new_status=ITEM_STATUS_AVAILABLE,
        )
        return item

    return run_in_transaction(_op)


def edit_item(item_id: int, patch: dict, actor) -> Item:
    """Edit descriptive fields. Logs 'edited' only when something changed."""
    authorize(actor, "edit_item")
    actor_id = actor.id

    def _op():
        item, changes = item_service.update_item_fields(item_id, patch, changed_by=actor_id)
        if changes:
            history_service.append_history(
                item_id=item.id,
                action=ACTION_EDITED,
                performed_by=actor_id,
                details=f"Item updated: {', '.join(changes)}",
            )
        return item

    return run_in_transaction(_op)


def list_history(item_id: int, actor) -> list[HistoryEntry]:
    authorize(actor, "list_history")
    item_service.get_item(item_id)
    return history_service.list_for_item(item_id)


def list_pending_for_item(item_id: int, actor) -> list[PendingRequest]:
    authorize(actor, "view_requests")
    return request_queue_service.list_for_item(item_id)
