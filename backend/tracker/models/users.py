from __future__ import annotations

from ..extensions import db
from tracker.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_EMPLOYEE = "employee"
VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE)

USER_STATUS_ACTIVE = "active"
USER_STATUS_DEACTIVE = "deactive"
VALID_USER_STATUSES = (USER_STATUS_ACTIVE, USER_STATUS_DEACTIVE)


class User(db.Model):
    """
    Directory entry for anyone who can request or approve item movements.

    The tracking core only consumes id/role/status. Credentials are owned by
    whatever front door authenticates the caller, so no secret lives here.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        db.CheckConstraint(
            "role IN ('admin', 'manager', 'employee')",
            name="valid_role",
        ),
        db.CheckConstraint(
            "status IN ('active', 'deactive')",
            name="valid_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)
    status = db.Column(db.String(16), nullable=False, default=USER_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_active(self) -> bool:
        return self.status == USER_STATUS_ACTIVE

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
