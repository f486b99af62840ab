from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"material", "description", "serial_number"},
    required_on_create={"material", "serial_number"},
)

USER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "role", "status"},
    required_on_create={"username", "role"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against column metadata and a policy.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Returns a cleaned patch dict with only writable fields. Strings are
    stripped; blank values for nullable text columns become None.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in cols:
            raise ValidationError(f"Field not allowed: {key}")
        col = cols[key]

        if raw is not None and not isinstance(raw, str):
            raise ValidationError(f"{key} must be a string")
        value = raw.strip() if isinstance(raw, str) else None

        if not value:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            patch[key] = None
            continue

        if isinstance(col.type, String) and not isinstance(col.type, Text) and col.type.length:
            if len(value) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")

        patch[key] = value

    return patch
