"""Event primitives for court lifecycle notifications."""

from .booking_events import (
    BookingCancelled,
    BookingCreated,
    BookingEvents,
    CourtEvent,
    CourtEventListener,
    GrantApproved,
    PaymentSettled,
    emit,
    register_listener,
    unregister_listener,
)

__all__ = [
    "BookingCancelled",
    "BookingCreated",
    "BookingEvents",
    "CourtEvent",
    "CourtEventListener",
    "GrantApproved",
    "PaymentSettled",
    "emit",
    "register_listener",
    "unregister_listener",
]
