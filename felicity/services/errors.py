"""Error kinds raised by the registration engine.

Every precondition failure carries one ``ErrorKind`` so callers (the HTTP
layer, Celery tasks, tests) can branch on the kind instead of the message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    INELIGIBLE = "INELIGIBLE"
    DEADLINE_PASSED = "DEADLINE_PASSED"
    CAPACITY_FULL = "CAPACITY_FULL"
    VARIANT_NOT_FOUND = "VARIANT_NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INVALID_STATE = "INVALID_STATE"
    UNAUTHORIZED = "UNAUTHORIZED"
    ALREADY_SCANNED = "ALREADY_SCANNED"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_TICKET = "INVALID_TICKET"
    BUSY = "BUSY"
    TICKET_ISSUANCE_FAILED = "TICKET_ISSUANCE_FAILED"


@dataclass(frozen=True, eq=False)
class RegistrationError(Exception):
    """Base error with a kind and a user-safe message."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class NotFoundError(RegistrationError):
    def __init__(self, what: str) -> None:
        super().__init__(kind=ErrorKind.NOT_FOUND, message=f"{what} not found")


class AlreadyRegisteredError(RegistrationError):
    def __init__(self) -> None:
        super().__init__(kind=ErrorKind.ALREADY_REGISTERED, message="Already registered for this event")


class IneligibleError(RegistrationError):
    def __init__(self, eligibility: str) -> None:
        audience = eligibility.replace("_", " ")
        super().__init__(
            kind=ErrorKind.INELIGIBLE,
            message=f"This event is only for {audience} participants",
        )


class DeadlinePassedError(RegistrationError):
    def __init__(self) -> None:
        super().__init__(kind=ErrorKind.DEADLINE_PASSED, message="Registration deadline has passed")


class CapacityFullError(RegistrationError):
    def __init__(self, pool: str = "seats") -> None:
        super().__init__(kind=ErrorKind.CAPACITY_FULL, message="Event is full", details={"pool": pool})


class VariantNotFoundError(RegistrationError):
    def __init__(self, size: str | None, color: str | None) -> None:
        super().__init__(
            kind=ErrorKind.VARIANT_NOT_FOUND,
            message=f"Variant not found: {size} - {color}",
        )


class OutOfStockError(RegistrationError):
    def __init__(self, label: str) -> None:
        super().__init__(kind=ErrorKind.OUT_OF_STOCK, message=f"{label} is out of stock")


class InsufficientStockError(RegistrationError):
    def __init__(self, label: str, available: int, requested: int) -> None:
        super().__init__(
            kind=ErrorKind.INSUFFICIENT_STOCK,
            message=f"Only {available} unit(s) available for {label}. You requested {requested}.",
            details={"available": available, "requested": requested},
        )


class LimitExceededError(RegistrationError):
    def __init__(self, limit: int) -> None:
        super().__init__(
            kind=ErrorKind.LIMIT_EXCEEDED,
            message=f"Maximum {limit} items per person",
            details={"limit": limit},
        )


class InvalidStateError(RegistrationError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(kind=ErrorKind.INVALID_STATE, message=message, details=details)


class UnauthorizedError(RegistrationError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(kind=ErrorKind.UNAUTHORIZED, message=message)


class AlreadyScannedError(RegistrationError):
    def __init__(self, ticket_id: str, scanned_at: Any) -> None:
        super().__init__(
            kind=ErrorKind.ALREADY_SCANNED,
            message="Ticket already scanned",
            details={"ticket_id": ticket_id, "scanned_at": scanned_at},
        )


class InvalidRequestError(RegistrationError):
    def __init__(self, message: str) -> None:
        super().__init__(kind=ErrorKind.INVALID_REQUEST, message=message)


class InvalidTicketError(RegistrationError):
    def __init__(self) -> None:
        super().__init__(kind=ErrorKind.INVALID_TICKET, message="Invalid ticket data")


class LockUnavailableError(RegistrationError):
    def __init__(self, name: str) -> None:
        super().__init__(
            kind=ErrorKind.BUSY,
            message="Could not acquire lock, please try again.",
            details={"lock": name},
        )


class TicketIssuanceError(RegistrationError):
    def __init__(self, attempts: int) -> None:
        super().__init__(
            kind=ErrorKind.TICKET_ISSUANCE_FAILED,
            message=f"Could not mint a unique ticket id after {attempts} attempts",
        )
