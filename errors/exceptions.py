"""Domain-specific exceptions for the ALS progress service.

These exceptions let the coordinator and the API layer tell apart the
failure modes of a mutation or fetch and respond with the right message:
an inline field error, a rejected mutation, a "not found" page, or a
banner while cached data stays on screen.
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for every failure surfaced by the sync core."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(ProgressError):
    """Client-detectable bad input.  Blocks the network call entirely."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class AuthorizationError(ProgressError):
    """The actor's role or barangay does not permit the mutation."""

    def __init__(
        self,
        message: str,
        role: str = "",
        actor_barangay_id: str | None = None,
        target_barangay_id: str | None = None,
    ) -> None:
        self.role = role
        self.actor_barangay_id = actor_barangay_id
        self.target_barangay_id = target_barangay_id
        super().__init__(message)


class NotFoundError(ProgressError):
    """A referenced entity (student, module, progress record) does not exist."""

    def __init__(self, entity_type: str, entity_id: str, message: str = "") -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} '{entity_id}' not found")


class TransientNetworkError(ProgressError):
    """Transport failure or 5xx from the upstream API.

    Views keep showing whatever cached or bundled data they already hold.
    """

    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class IntegrityViolation(ProgressError):
    """A uniqueness constraint was violated (e.g. duplicate LRN).

    Carries the form field the message belongs to.
    """

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class GatewayError(ProgressError):
    """Any other non-2xx response from the upstream API."""

    def __init__(self, status_code: int, detail: str, url: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"Progress API {status_code}: {detail} ({url})")
