# clubcourt/core/exceptions.py
"""
Domain-specific exceptions for the club court engine.

Every exception carries a stable ``code``, a human-readable ``message``
and a ``details`` mapping with enough context for the caller to correct
the request. ``status_code`` is the HTTP status an outer API layer
should use when surfacing the error.
"""

from decimal import Decimal
from http import HTTPStatus
from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = HTTPStatus.BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = HTTPStatus.NOT_FOUND

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        code: str = "NOT_FOUND",
    ) -> None:
        details: Dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if resource_id:
            details["id"] = resource_id
        super().__init__(
            message=message or f"{resource or 'Resource'} not found",
            code=code,
            details=details,
        )


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = HTTPStatus.CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY


class ForbiddenException(DomainException):
    """Raised when an account lacks permission for an action."""

    status_code = HTTPStatus.FORBIDDEN

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        code: str = "FORBIDDEN",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class ServiceException(DomainException):
    """Raised when a service operation fails."""


# Specific business exceptions


class InvalidDateException(ValidationException):
    """Raised when a booking is requested for a day that has already passed."""

    def __init__(self, requested: Any, today: Any):
        super().__init__(
            message=f"Cannot book a date in the past ({requested})",
            code="INVALID_DATE",
            details={"date": str(requested), "today": str(today)},
        )


class InvalidRangeException(ValidationException):
    """Raised for unknown slot labels, inverted ranges and out-of-bound windows."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            code="INVALID_RANGE",
            details={key: str(value) for key, value in details.items()},
        )


class SlotConflictException(ConflictException):
    """Raised when a booking overlaps an existing non-cancelled booking."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class FeesUnpaidException(BusinessRuleException):
    def __init__(self, account_id: str):
        super().__init__(
            message="Membership fees must be paid before reserving the court",
            code="FEES_UNPAID",
            details={"account_id": account_id},
        )


class UnsettledPaymentsException(BusinessRuleException):
    """Raised when outstanding court fees block a new booking."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            message=f"You have {count} unsettled payment(s); settle them before booking",
            code="UNSETTLED_PAYMENTS",
            details={"count": count},
        )


class InsufficientBalanceException(BusinessRuleException):
    """Raised when a coin debit exceeds the account balance."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            message=f"Insufficient coins: {required} required, {available} available",
            code="INSUFFICIENT_BALANCE",
            details={"required": required, "available": available},
        )


class AlreadyCancelledException(ConflictException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class AlreadyCompletedException(ConflictException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Completed bookings cannot be cancelled",
            code="ALREADY_COMPLETED",
            details={"booking_id": booking_id},
        )


class NotCompletedException(BusinessRuleException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Payment can only be recorded after the reservation has ended",
            code="NOT_COMPLETED",
            details={"booking_id": booking_id},
        )


class NotInRosterException(ForbiddenException):
    def __init__(self, booking_id: str, account_id: str):
        super().__init__(
            message="Account is not a participant of this booking",
            code="NOT_IN_ROSTER",
            details={"booking_id": booking_id, "account_id": account_id},
        )


class AlreadySettledException(ConflictException):
    def __init__(self, message: str = "Payment already recorded", **details: Any):
        super().__init__(message=message, code="ALREADY_SETTLED", details=details)


class AmountMismatchException(ValidationException):
    """Raised when a claimed amount differs from the recomputed total."""

    def __init__(self, expected: Decimal, got: Decimal):
        self.expected = expected
        self.got = got
        super().__init__(
            message=f"Payment amount mismatch. Expected: {expected}, Received: {got}",
            code="AMOUNT_MISMATCH",
            details={"expected": str(expected), "got": str(got)},
        )


class InvalidStatusTransitionException(ConflictException):
    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(
            message=f"Cannot move {entity} from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            details={"entity": entity, "current": current, "requested": requested},
        )


class FeatureAlreadyActiveException(ConflictException):
    def __init__(self, feature: str):
        super().__init__(
            message=f"Feature '{feature}' is already active",
            code="FEATURE_ALREADY_ACTIVE",
            details={"feature": feature},
        )


class StorageUnavailableException(ServiceException):
    """Raised when the database stays unreachable after bounded retries."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE

    def __init__(self, operation: str, error: Optional[str] = None):
        super().__init__(
            message="Storage is temporarily unavailable. Please retry.",
            code="STORAGE_UNAVAILABLE",
            details={"operation": operation, "error": error},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
