from __future__ import annotations

from ..extensions import db
from tracker.time_utils import to_utc_z, utcnow

ACTION_CREATED = "created"
ACTION_EDITED = "edited"
ACTION_BORROWED = "borrowed"
ACTION_RETURNED = "returned"
ACTION_ARCHIVED = "archived"
ACTION_REJECTED = "rejected"
ACTION_REQUESTED_BORROW = "requested_borrow"
ACTION_REQUESTED_RETURN = "requested_return"

VALID_ACTIONS = (
    ACTION_CREATED,
    ACTION_EDITED,
    ACTION_BORROWED,
    ACTION_RETURNED,
    ACTION_ARCHIVED,
    ACTION_REJECTED,
    ACTION_REQUESTED_BORROW,
    ACTION_REQUESTED_RETURN,
)


class HistoryEntry(db.Model):
    """
    Append-only audit record for one state-affecting event on an item.

    request_id is a plain column, not a foreign key: the pending request it
    refers to is deleted once resolved, the audit row outlives it.
    """
    __tablename__ = "histories"
    __table_args__ = (
        db.Index("ix_histories_item_timestamp", "item_id", "timestamp"),
        db.CheckConstraint(
            "action IN ('created', 'edited', 'borrowed', 'returned', 'archived', "
            "'rejected', 'requested_borrow', 'requested_return')",
            name="valid_action",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    details = db.Column(db.Text, nullable=True)
    previous_status = db.Column(db.String(16), nullable=True)
    new_status = db.Column(db.String(16), nullable=True)
    request_id = db.Column(db.Integer, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<HistoryEntry id={self.id} item_id={self.item_id} action={self.action}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "action": self.action,
            "performed_by": self.performed_by,
            "timestamp": to_utc_z(self.timestamp),
            "details": self.details,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "request_id": self.request_id,
        }
