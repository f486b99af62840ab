# Overview: User directory. Usernames, roles and active/deactive status.

from __future__ import annotations

from typing import Iterable

from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateUsernameError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..models.users import USER_STATUS_ACTIVE, VALID_ROLES, VALID_USER_STATUSES


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def find_by_username(username: str) -> User | None:
    return db.session.query(User).filter_by(username=username).first()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def username_map(user_ids: Iterable[int | None]) -> dict[int, str]:
    """Resolve a batch of user ids to usernames with a single query."""
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    rows = db.session.query(User.id, User.username).filter(User.id.in_(ids)).all()
    return {row.id: row.username for row in rows}


def _validate_role(role: str) -> None:
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role '{role}'. Must be one of: {', '.join(VALID_ROLES)}")


def _validate_status(status: str) -> None:
    if status not in VALID_USER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_USER_STATUSES)}"
        )


def create_user(username: str, role: str, status: str = USER_STATUS_ACTIVE) -> User:
    """
    Add a user to the directory. New accounts are active by default.

    Raises:
        ValidationError: bad role/status or blank username
        DuplicateUsernameError: username taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username cannot be blank")
    _validate_role(role)
    _validate_status(status)

    if find_by_username(username) is not None:
        raise DuplicateUsernameError(f"A user with username '{username}' already exists")

    user = User(username=username, role=role, status=status)
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise DuplicateUsernameError(f"A user with username '{username}' already exists") from exc
    return user


def update_user(user_id: int, *, username: str | None = None, role: str | None = None,
                status: str | None = None) -> User:
    user = get_user(user_id)

    if username is not None and username != user.username:
        clash = find_by_username(username)
        if clash is not None:
            raise DuplicateUsernameError(f"A user with username '{username}' already exists")
        user.username = username
    if role is not None:
        _validate_role(role)
        user.role = role
    if status is not None:
        _validate_status(status)
        user.status = status

    db.session.flush()
    return user
