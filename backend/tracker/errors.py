# Overview: Domain error taxonomy shared by services, routes and the CLI.

"""
Every failure the tracking core reports is a TrackerError subclass.

- Validation errors (bad input, illegal state, duplicates, role problems) are
  expected outcomes. They are reported as-is and never retried.
- RequestNoLongerPendingError is a concurrency outcome: somebody else already
  resolved the request. The caller refreshes and decides again.
- StorageError wraps database failures. The surrounding transaction has been
  rolled back by the time it is raised.

status_code is the HTTP status the API layer answers with.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all domain errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": type(self).__name__}


class ValidationError(TrackerError, ValueError):
    """400-level input problem."""


class NotFoundError(TrackerError):
    status_code = 404


class InvalidStateError(TrackerError):
    """The item's current status does not allow the operation."""
    status_code = 409


class DuplicateRequestError(TrackerError):
    status_code = 409


class DuplicateSerialNumberError(TrackerError):
    status_code = 409


class DuplicateUsernameError(TrackerError):
    status_code = 409


class NotAuthorizedForReturnError(TrackerError):
    """Only the current borrower may ask to return an item."""
    status_code = 403


class UnauthorizedError(TrackerError):
    """Inactive actor, or a role that may not perform the action."""
    status_code = 403


class RequestNoLongerPendingError(TrackerError):
    """The request existed but was resolved by another decision first."""
    status_code = 409


class StorageError(TrackerError):
    status_code = 503
