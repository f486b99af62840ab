# Overview: Request Queue. Open borrow/return requests, partitioned by item.

from __future__ import annotations

from collections import defaultdict

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateRequestError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PendingRequest
from ..models.pending import REQUEST_TYPE_RETURN, REQUEST_TYPE_USE, VALID_REQUEST_TYPES


def get_request(request_id: int) -> PendingRequest:
    req = db.session.query(PendingRequest).filter_by(id=request_id).first()
    if req is None:
        raise NotFoundError(f"Request {request_id} not found")
    return req


def list_for_item(item_id: int) -> list[PendingRequest]:
    return (
        db.session.query(PendingRequest)
        .filter_by(item_id=item_id)
        .order_by(PendingRequest.requested_at.desc(), PendingRequest.id.desc())
        .all()
    )


def list_all() -> list[PendingRequest]:
    return (
        db.session.query(PendingRequest)
        .order_by(PendingRequest.requested_at.desc(), PendingRequest.id.desc())
        .all()
    )


def list_by_user(user_id: int) -> list[PendingRequest]:
    return (
        db.session.query(PendingRequest)
        .filter_by(requested_by=user_id)
        .order_by(PendingRequest.requested_at.desc(), PendingRequest.id.desc())
        .all()
    )


def is_open(request_id: int) -> bool:
    """Ask the database, not the identity map, whether the request still exists."""
    return db.session.query(PendingRequest.id).filter_by(id=request_id).first() is not None


def has_open_request(item_id: int, user_id: int, request_type: str) -> bool:
    return (
        db.session.query(PendingRequest.id)
        .filter_by(item_id=item_id, requested_by=user_id, type=request_type)
        .first()
        is not None
    )


def enqueue(item_id: int, user_id: int, request_type: str) -> PendingRequest:
    """
    Open a new request.

    Raises:
        ValidationError: unknown request type
        DuplicateRequestError: the same user already has this request open
    """
    if request_type not in VALID_REQUEST_TYPES:
        raise ValidationError(
            f"Invalid request type '{request_type}'. Must be one of: {', '.join(VALID_REQUEST_TYPES)}"
        )

    if has_open_request(item_id, user_id, request_type):
        raise DuplicateRequestError(
            f"You already have a pending {request_type} request for this item"
        )

    req = PendingRequest(item_id=item_id, requested_by=user_id, type=request_type)
    db.session.add(req)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # A concurrent identical submission committed first
        raise DuplicateRequestError(
            f"You already have a pending {request_type} request for this item"
        ) from exc
    return req


def remove_all_for_item(item_id: int) -> int:
    """Delete every open request for the item. Returns how many were removed."""
    removed = (
        db.session.query(PendingRequest)
        .filter_by(item_id=item_id)
        .delete(synchronize_session="fetch")
    )
    db.session.flush()
    return removed


def remove_one(request_id: int) -> None:
    req = get_request(request_id)
    db.session.delete(req)
    db.session.flush()


def group_by_item_and_type() -> dict[str, dict]:
    """
    Open requests grouped as "<item_id>-<type>" -> {item_id, type, requests}.

    Groups keep the newest-first order of list_all().
    """
    grouped: dict[str, dict] = {}
    for req in list_all():
        key = f"{req.item_id}-{req.type}"
        group = grouped.setdefault(key, {"item_id": req.item_id, "type": req.type, "requests": []})
        group["requests"].append(req)
    return grouped


def has_conflicting_requests(item_id: int) -> bool:
    """More than one request type open for the same item."""
    return len({req.type for req in list_for_item(item_id)}) > 1


def request_statistics() -> dict:
    requests = list_all()
    types_by_item: dict[int, set] = defaultdict(set)
    for req in requests:
        types_by_item[req.item_id].add(req.type)

    return {
        "total_pending": len(requests),
        "borrow_requests": sum(1 for r in requests if r.type == REQUEST_TYPE_USE),
        "return_requests": sum(1 for r in requests if r.type == REQUEST_TYPE_RETURN),
        "conflicting_items": sum(1 for types in types_by_item.values() if len(types) > 1),
    }
