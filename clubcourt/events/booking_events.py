"""Typed court lifecycle events and the in-process dispatcher."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("clubcourt.events.booking")


class CourtEvent(BaseModel):
    """Base class for court domain events."""

    model_config = ConfigDict(extra="forbid", frozen=True)


CourtEventListener = Callable[[CourtEvent], None]


class BookingEvents:
    """
    Registry for court event listeners.

    Delivery is synchronous and fire-and-forget: a failing listener is
    logged and never affects the operation that emitted the event.
    """

    _listeners: List[CourtEventListener] = []

    @classmethod
    def register(cls, listener: CourtEventListener) -> None:
        cls._listeners.append(listener)

    @classmethod
    def unregister(cls, listener: CourtEventListener) -> None:
        cls._listeners = [existing for existing in cls._listeners if existing is not listener]

    @classmethod
    def clear(cls) -> None:
        cls._listeners = []

    @classmethod
    def listeners(cls) -> Sequence[CourtEventListener]:
        return tuple(cls._listeners)

    @classmethod
    def dispatch(cls, event: CourtEvent) -> None:
        for listener in list(cls._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Court event listener error: %s", listener)
        logger.info("court_event=%s payload=%s", event.__class__.__name__, event.model_dump())


class BookingCreated(CourtEvent):
    """Fired after a booking is committed."""

    booking_id: str
    owner_id: str
    booking_date: date
    start_slot: str
    end_slot: str
    roster_ids: Tuple[str, ...]
    coin_cost: int
    created_at: datetime


class BookingCancelled(CourtEvent):
    """Fired after a booking is cancelled and its coins refunded."""

    booking_id: str
    owner_id: str
    cancelled_by: str
    booking_date: date
    start_slot: str
    refund_amount: int
    cancelled_at: datetime


class GrantApproved(CourtEvent):
    """Fired after an admin approves a coin request."""

    entry_id: str
    account_id: str
    amount: int
    approved_by: Optional[str] = None


class PaymentSettled(CourtEvent):
    """Fired after a cash payment record is logged for review."""

    payment_id: str
    account_id: str
    play_type: str
    amount: Decimal
    booking_id: Optional[str] = None


def register_listener(listener: CourtEventListener) -> None:
    """Register an in-process listener for court events."""

    BookingEvents.register(listener)


def unregister_listener(listener: CourtEventListener) -> None:
    """Remove a previously registered listener."""

    BookingEvents.unregister(listener)


def emit(event: CourtEvent) -> CourtEvent:
    BookingEvents.dispatch(event)
    return event


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
