"""Exception classes raised by the draw, tracking and scoring services."""

from __future__ import annotations

from typing import Any, Optional


class RaffleError(Exception):
    """Base error carrying a machine readable code and an HTTP-like status."""

    code = "raffle_error"
    status_code = 500
    default_message = "Unexpected raffle error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(RaffleError, ValueError):
    """Raised when input is malformed or out of range."""

    code = "validation_error"
    status_code = 400
    default_message = "Validation failed."


class CountMismatchError(ValidationError):
    """Raised when requested entry counts do not add up to the pool size.

    ``delta`` is ``available - requested``: positive values are a deficit of
    requested entries, negative values a surplus.
    """

    code = "count_mismatch"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        self.delta = available - requested
        if self.delta > 0:
            detail = f"deficit of {self.delta}"
        else:
            detail = f"surplus of {-self.delta}"
        super().__init__(
            f"Participants requested {requested} entries but the pool holds "
            f"{available} ({detail})."
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            requested=self.requested, available=self.available, delta=self.delta
        )
        return payload


class EmptyPoolError(ValidationError):
    code = "empty_pool"
    default_message = "The league's entrant pool is empty."


class InvalidEliminationError(ValidationError):
    code = "invalid_elimination"
    default_message = "An entrant cannot be credited with its own elimination."


class ConflictError(RaffleError):
    """Raised when the request clashes with the current state."""

    code = "conflict"
    status_code = 409
    default_message = "Request conflicts with the current state."


class AlreadyDrawnError(ConflictError):
    code = "already_drawn"
    default_message = "The draw for this league has already been run."


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class NotFoundError(RaffleError, LookupError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


class DrawIntegrityError(RuntimeError):
    """A committed draw broke its own invariants. This is a bug, not user error."""


__all__ = [
    "AlreadyDrawnError",
    "ConflictError",
    "CountMismatchError",
    "DrawIntegrityError",
    "EmptyPoolError",
    "InvalidEliminationError",
    "InvalidTransitionError",
    "NotFoundError",
    "RaffleError",
    "ValidationError",
]
