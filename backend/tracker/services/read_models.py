# Overview: Query-time views that join usernames into items, requests and history rows.

"""
Write-side rows only hold user ids. Anything a screen needs to display
(borrower name, requester name, who performed an action) is assembled here,
with one username lookup per batch instead of one per row.
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import HistoryEntry, Item, PendingRequest
from . import user_service


def _user_ref(user_id: int | None, names: dict[int, str]) -> dict | None:
    if user_id is None:
        return None
    return {"id": user_id, "username": names.get(user_id)}


def item_views(items: Iterable[Item]) -> list[dict]:
    items = list(items)
    names = user_service.username_map(
        uid for item in items for uid in (item.last_used_by, item.changed_by)
    )
    views = []
    for item in items:
        view = item.to_dict()
        view["last_used_by_user"] = _user_ref(item.last_used_by, names)
        view["changed_by_user"] = _user_ref(item.changed_by, names)
        views.append(view)
    return views


def item_view(item: Item) -> dict:
    return item_views([item])[0]


def request_views(requests: Iterable[PendingRequest], *, include_item: bool = True) -> list[dict]:
    requests = list(requests)
    names = user_service.username_map(r.requested_by for r in requests)
    items: dict[int, dict] = {}
    item_ids = {r.item_id for r in requests}
    if include_item and item_ids:
        for item in db.session.query(Item).filter(Item.id.in_(item_ids)):
            items[item.id] = item.to_dict()

    views = []
    for req in requests:
        view = req.to_dict()
        view["requested_by_user"] = _user_ref(req.requested_by, names)
        if include_item:
            view["item"] = items.get(req.item_id)
        views.append(view)
    return views


def history_views(entries: Iterable[HistoryEntry]) -> list[dict]:
    entries = list(entries)
    names = user_service.username_map(e.performed_by for e in entries)
    views = []
    for entry in entries:
        view = entry.to_dict()
        view["performed_by_user"] = _user_ref(entry.performed_by, names)
        views.append(view)
    return views


def grouped_request_views(grouped: dict[str, dict]) -> dict[str, dict]:
    """Dashboard groups, each carrying its item view once instead of per request."""
    item_ids = {group["item_id"] for group in grouped.values()}
    items: dict[int, dict] = {}
    if item_ids:
        rows = db.session.query(Item).filter(Item.id.in_(item_ids)).all()
        items = {view["id"]: view for view in item_views(rows)}

    return {
        key: {
            "item_id": group["item_id"],
            "item": items.get(group["item_id"]),
            "type": group["type"],
            "requests": request_views(group["requests"], include_item=False),
        }
        for key, group in grouped.items()
    }
