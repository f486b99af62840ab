from __future__ import annotations

from ..extensions import db
from tracker.time_utils import to_utc_z, utcnow

REQUEST_TYPE_USE = "use"
REQUEST_TYPE_RETURN = "return"
VALID_REQUEST_TYPES = (REQUEST_TYPE_USE, REQUEST_TYPE_RETURN)


class PendingRequest(db.Model):
    """
    An open borrow ("use") or return request awaiting an admin decision.

    The unique constraint backs up the service-level duplicate check when two
    identical submissions race each other.
    """
    __tablename__ = "pending_requests"
    __table_args__ = (
        db.UniqueConstraint("item_id", "requested_by", "type", name="uq_pending_requests_item_user_type"),
        db.CheckConstraint("type IN ('use', 'return')", name="valid_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<PendingRequest id={self.id} item_id={self.item_id} type={self.type} by={self.requested_by}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "type": self.type,
            "requested_by": self.requested_by,
            "requested_at": to_utc_z(self.requested_at),
        }
