# purchases/services/exceptions.py

"""
PURCHASE SERVICE ERRORS

Centralized domain errors for the purchase engine.

Every error carries:
- kind         stable, machine-readable discriminator
- http_status  what the API layer answers with
- message      human readable summary
- errors       field-level details (validation only)

Services raise these; views never catch them. The project exception
handler (backend.exception_handler) renders them.
"""

from __future__ import annotations


class PurchaseServiceError(Exception):
    """Base exception for all purchase service failures."""

    kind = "internal_error"
    http_status = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "errors": self.errors,
        }


class PurchaseValidationError(PurchaseServiceError):
    """
    Raised when a draft or a pricing snapshot is malformed.

    `errors` is a list of {"field": ..., "message": ...}; all offending
    fields are reported at once.
    """

    kind = "validation_error"
    http_status = 400
    default_message = "Validation failed"

    @property
    def fields(self) -> list[str]:
        return [e.get("field") for e in self.errors]


class PurchaseNotFound(PurchaseServiceError):
    """Raised when an order does not exist OR is outside the caller's scope."""

    kind = "not_found"
    http_status = 404
    default_message = "Purchase not found"


class PurchaseForbidden(PurchaseServiceError):
    """Raised when the caller's role may not perform the action."""

    kind = "forbidden"
    http_status = 403
    default_message = "You do not have permission to perform this action"


class InvalidTransition(PurchaseServiceError):
    """Raised when a status change is not a legal edge of the lifecycle."""

    kind = "invalid_transition"
    http_status = 409
    default_message = "Invalid status transition"


class PurchaseConflict(PurchaseServiceError):
    """Raised when the order's current state forbids the operation (e.g. cancel twice)."""

    kind = "conflict"
    http_status = 409
    default_message = "Purchase cannot be modified in its current state"


class PurchaseUnavailable(PurchaseServiceError):
    """Raised when the datastore fails or tracking allocation is exhausted."""

    kind = "unavailable"
    http_status = 503
    default_message = "Purchase service temporarily unavailable"
