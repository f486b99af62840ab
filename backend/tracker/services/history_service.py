# Overview: History Ledger. Append-only audit trail of every state-affecting item event.

from __future__ import annotations

from typing import Optional

from ..errors import ValidationError
from ..extensions import db
from ..models import HistoryEntry
from ..models.history import VALID_ACTIONS
"""
History Ledger invariants

- Append-only: no updates, no deletes.
- No domain logic here; callers decide what happened, the ledger records it.
- Entries are written inside the same DB transaction as the change they
  describe, so an item mutation and its audit rows commit or roll back together.
- Reads are fresh queries, most recent first.
"""


def append_history(
    *,
    item_id: int,
    action: str,
    performed_by: int,
    details: Optional[str] = None,
    previous_status: Optional[str] = None,
    new_status: Optional[str] = None,
    request_id: Optional[int] = None,
) -> HistoryEntry:
    """
    Append one audit entry. Flushes (to assign id) but never commits.
    """
    if action not in VALID_ACTIONS:
        raise ValidationError(f"Invalid history action '{action}'")

    entry = HistoryEntry(
        item_id=item_id,
        action=action,
        performed_by=performed_by,
        details=details,
        previous_status=previous_status,
        new_status=new_status,
        request_id=request_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_for_item(item_id: int) -> list[HistoryEntry]:
    return (
        db.session.query(HistoryEntry)
        .filter_by(item_id=item_id)
        .order_by(HistoryEntry.timestamp.desc(), HistoryEntry.id.desc())
        .all()
    )


def list_recent(limit: int = 50) -> list[HistoryEntry]:
    return (
        db.session.query(HistoryEntry)
        .order_by(HistoryEntry.timestamp.desc(), HistoryEntry.id.desc())
        .limit(limit)
        .all()
    )


def has_entries_for_request(request_id: int) -> bool:
    """True once any audit row mentions request_id (i.e. it was ever submitted)."""
    return (
        db.session.query(HistoryEntry.id)
        .filter_by(request_id=request_id)
        .first()
        is not None
    )
