from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from clubcourt.events.booking_events import (
    BookingCreated,
    BookingEvents,
    PaymentSettled,
    emit,
    register_listener,
    unregister_listener,
)


def _created() -> BookingCreated:
    return BookingCreated(
        booking_id="b1",
        owner_id="a1",
        booking_date=date(2031, 3, 3),
        start_slot="09:00",
        end_slot="11:00",
        roster_ids=("a1", "a2"),
        coin_cost=20,
        created_at=datetime(2031, 3, 3, 1, 0, tzinfo=timezone.utc),
    )


def test_listeners_receive_emitted_events() -> None:
    received = []
    register_listener(received.append)

    event = emit(_created())

    assert received == [event]


def test_failing_listener_does_not_stop_others(caplog) -> None:
    received = []

    def broken(_event) -> None:
        raise RuntimeError("mailer down")

    register_listener(broken)
    register_listener(received.append)

    emit(_created())

    assert len(received) == 1
    assert "Court event listener error" in caplog.text


def test_unregister_removes_listener() -> None:
    received = []
    listener = received.append
    register_listener(listener)
    unregister_listener(listener)

    emit(_created())

    assert BookingEvents.listeners() == ()
    assert received == []


def test_events_are_immutable_and_strict() -> None:
    event = _created()
    with pytest.raises(ValidationError):
        event.coin_cost = 0
    with pytest.raises(ValidationError):
        PaymentSettled(
            payment_id="p1",
            account_id="a1",
            play_type="reservation",
            amount=Decimal("1"),
            unexpected="x",
        )
