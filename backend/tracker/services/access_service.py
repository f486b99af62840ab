# Overview: Role/status gate applied to every core operation.

"""
The tracking core never looks up "who is calling" on its own. Callers pass
the acting user in explicitly, and these helpers decide whether that actor
may perform the operation at all.
"""

from __future__ import annotations

from ..errors import UnauthorizedError
from ..models.users import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, USER_STATUS_ACTIVE

# Operation -> roles allowed to perform it
OPERATION_ROLES = {
    "submit_request": {ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE},
    "approve_request": {ROLE_ADMIN},
    "reject_request": {ROLE_ADMIN},
    "create_item": {ROLE_ADMIN},
    "edit_item": {ROLE_ADMIN},
    "archive_item": {ROLE_ADMIN},
    "restore_item": {ROLE_ADMIN},
    "list_history": {ROLE_ADMIN, ROLE_MANAGER},
    "view_requests": {ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE},
    "view_dashboard": {ROLE_ADMIN, ROLE_MANAGER},
    "manage_users": {ROLE_ADMIN, ROLE_MANAGER},
}


def ensure_active(actor) -> None:
    """Reject a missing or deactivated actor."""
    if actor is None:
        raise UnauthorizedError("No acting user supplied")
    if actor.status != USER_STATUS_ACTIVE:
        raise UnauthorizedError(f"User {actor.username!r} is deactivated")


def can_perform(actor, operation: str) -> bool:
    return actor.role in OPERATION_ROLES.get(operation, set())


def authorize(actor, operation: str) -> None:
    """
    Raise UnauthorizedError unless actor is active and its role may run operation.

    Unknown operation names are denied.
    """
    ensure_active(actor)
    if not can_perform(actor, operation):
        raise UnauthorizedError(
            f"Role '{actor.role}' is not allowed to {operation.replace('_', ' ')}"
        )
