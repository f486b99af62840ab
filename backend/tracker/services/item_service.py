# Overview: Item Store. Owns item rows and the only sanctioned way to change item status.

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateSerialNumberError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Item
from ..models.items import (
    ITEM_STATUS_ARCHIVED,
    ITEM_STATUS_AVAILABLE,
    VALID_ITEM_STATUSES,
)
from .concurrency import lock_for_update
from tracker.time_utils import utcnow


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Distinguishes "leave the column alone" from "set it to NULL"
UNSET = _Unset()

EDITABLE_FIELDS = ("material", "description", "serial_number")


def get_item(item_id: int, *, for_update: bool = False) -> Item:
    query = db.session.query(Item).filter_by(id=item_id)
    if for_update:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def find_by_serial(serial_number: str) -> Optional[Item]:
    return db.session.query(Item).filter_by(serial_number=serial_number).first()


def _flush_unique_serial(serial_number: str) -> None:
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent insert of the same serial
        raise DuplicateSerialNumberError(
            f"An item with serial number '{serial_number}' already exists"
        ) from exc


def create_item(
    material: str,
    serial_number: str,
    description: str | None = None,
    *,
    changed_by: int | None = None,
) -> Item:
    """
    Insert a new item in status 'available'.

    Raises:
        DuplicateSerialNumberError: serial number already used by any item
    """
    if find_by_serial(serial_number) is not None:
        raise DuplicateSerialNumberError(
            f"An item with serial number '{serial_number}' already exists"
        )

    item = Item(
        material=material,
        description=description,
        serial_number=serial_number,
        status=ITEM_STATUS_AVAILABLE,
        changed_by=changed_by,
    )
    db.session.add(item)
    _flush_unique_serial(serial_number)
    return item


def update_item_fields(item_id: int, patch: dict, *, changed_by: int) -> tuple[Item, list[str]]:
    """
    Apply a general edit (material / description / serial number).

    Status is deliberately not editable here; use transition_status.

    Returns:
        (item, changes) where changes is a list of "Field: old -> new" strings,
        empty when the patch did not change anything.
    """
    unknown = set(patch) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    item = get_item(item_id, for_update=True)

    new_serial = patch.get("serial_number")
    if new_serial is not None and new_serial != item.serial_number:
        clash = find_by_serial(new_serial)
        if clash is not None and clash.id != item.id:
            raise DuplicateSerialNumberError(
                f"An item with serial number '{new_serial}' already exists"
            )

    changes = []
    for field in EDITABLE_FIELDS:
        if field not in patch:
            continue
        old, new = getattr(item, field), patch[field]
        if old != new:
            label = field.replace("_", " ").capitalize()
            changes.append(f"{label}: {old or 'None'} -> {new or 'None'}")
            setattr(item, field, new)

    if changes:
        item.changed_by = changed_by
        item.updated_at = utcnow()
        _flush_unique_serial(item.serial_number)

    return item, changes


def transition_status(
    item_id: int,
    new_status: str,
    *,
    changed_by: int,
    last_used_by=UNSET,
    archived_reason=UNSET,
    expected_status: str | None = None,
) -> Item:
    """
    Move an item to new_status, stamping changed_by/updated_at.

    - last_used_by / archived_reason: pass a value (None included) to write
      it, leave as UNSET to keep the current value.
    - new_status 'archived' stamps archived_at.
    - new_status 'available' with archived_reason=None clears archived_at and
      archived_reason (restore out of archive).
    - expected_status guards against acting on a status the caller did not
      see. The version_id check on flush catches writers that slipped in
      between the read and the write.

    Raises:
        NotFoundError: unknown item
        InvalidStateError: status differs from expected_status
        StaleDataError: (at flush) a concurrent writer changed the row first
    """
    if new_status not in VALID_ITEM_STATUSES:
        raise ValidationError(f"Invalid item status '{new_status}'")

    item = get_item(item_id, for_update=True)

    if expected_status is not None and item.status != expected_status:
        raise InvalidStateError(
            f"Item {item_id} is '{item.status}', expected '{expected_status}'"
        )

    now = utcnow()
    item.status = new_status
    item.changed_by = changed_by
    item.updated_at = now

    if last_used_by is not UNSET:
        item.last_used_by = last_used_by

    if new_status == ITEM_STATUS_ARCHIVED:
        item.archived_at = now
        if archived_reason is not UNSET:
            item.archived_reason = archived_reason
    elif new_status == ITEM_STATUS_AVAILABLE and archived_reason is None:
        item.archived_at = None
        item.archived_reason = None
    elif archived_reason is not UNSET:
        item.archived_reason = archived_reason

    db.session.flush()
    return item


def list_items(
    *,
    status: str | None = None,
    search: str | None = None,
    include_archived: bool = False,
) -> list[Item]:
    """
    Items newest first.

    Without a status filter archived items are hidden unless
    include_archived is set. search matches material, description or serial.
    """
    query = db.session.query(Item)

    if status is not None:
        if status not in VALID_ITEM_STATUSES:
            raise ValidationError(f"Invalid item status '{status}'")
        query = query.filter(Item.status == status)
    elif not include_archived:
        query = query.filter(Item.status != ITEM_STATUS_ARCHIVED)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Item.material.ilike(pattern),
            Item.description.ilike(pattern),
            Item.serial_number.ilike(pattern),
        ))

    return query.order_by(Item.created_at.desc(), Item.id.desc()).all()


def search_items(term: str, *, limit: int = 10) -> list[Item]:
    """Quick lookup of non-archived items by material or serial number."""
    pattern = f"%{term.strip()}%"
    return (
        db.session.query(Item)
        .filter(Item.status != ITEM_STATUS_ARCHIVED)
        .filter(or_(Item.material.ilike(pattern), Item.serial_number.ilike(pattern)))
        .order_by(Item.material.asc(), Item.id.asc())
        .limit(limit)
        .all()
    )
