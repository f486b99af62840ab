from __future__ import annotations

from ..extensions import db
from tracker.time_utils import to_utc_z, utcnow

ITEM_STATUS_AVAILABLE = "available"
ITEM_STATUS_USED = "used"
# Accepted for rows written by older clients; the engine never assigns them.
ITEM_STATUS_PENDING_BORROW = "pending_borrow"
ITEM_STATUS_PENDING_RETURN = "pending_return"
ITEM_STATUS_ARCHIVED = "archived"

VALID_ITEM_STATUSES = (
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_USED,
    ITEM_STATUS_PENDING_BORROW,
    ITEM_STATUS_PENDING_RETURN,
    ITEM_STATUS_ARCHIVED,
)


class Item(db.Model):
    """
    A physical tool or material that can be borrowed and returned.

    STATUS INVARIANTS:
    - status == 'used'     <=> last_used_by is set (the current borrower)
    - status == 'archived'  => archived_at is set
    - serial_number is unique across all items, archived ones included

    CONCURRENCY:
    version_id is SQLAlchemy's version counter. Every UPDATE is issued as
    "... WHERE id = :id AND version_id = :seen" so two approvers racing on the
    same item cannot both win; the loser gets StaleDataError at flush.

    Items are never deleted. Retire them by archiving.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("serial_number", name="uq_items_serial_number"),
        db.Index("ix_items_status", "status"),
        db.CheckConstraint(
            "status IN ('available', 'used', 'pending_borrow', 'pending_return', 'archived')",
            name="valid_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    material = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    serial_number = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ITEM_STATUS_AVAILABLE)

    last_used_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    archived_reason = db.Column(db.Text, nullable=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} serial={self.serial_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material": self.material,
            "description": self.description,
            "serial_number": self.serial_number,
            "status": self.status,
            "last_used_by": self.last_used_by,
            "changed_by": self.changed_by,
            "archived_reason": self.archived_reason,
            "archived_at": to_utc_z(self.archived_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
