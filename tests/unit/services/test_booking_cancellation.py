from __future__ import annotations

import pytest

from clubcourt.core.exceptions import (
    AlreadyCancelledException,
    AlreadyCompletedException,
    ForbiddenException,
    NotFoundException,
)
from clubcourt.core.ulid_helper import generate_ulid
from clubcourt.events.booking_events import BookingCancelled
from clubcourt.models import AccountRole, BookingSlotClaim, BookingStatus, LedgerEntry, LedgerEntryKind
from clubcourt.monitoring.prometheus_metrics import REGISTRY
from clubcourt.services.booking_service import BookingService


def _cancellations(by: str) -> float:
    return REGISTRY.get_sample_value("clubcourt_bookings_cancelled_total", {"by": by}) or 0.0


def test_owner_cancel_refunds_coins_and_frees_slots(
    db, booking_service: BookingService, make_account, snapshot, today, captured_events
) -> None:
    owner = make_account(coins=100)
    booking = booking_service.create(snapshot(owner), today, "09:00", "11:00")
    before = _cancellations("owner")

    cancelled = booking_service.cancel(booking.id, snapshot(owner))

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_by_id == owner.id
    assert cancelled.cancelled_at is not None
    assert booking_service.coin_ledger.balance(owner.id) == 100
    assert db.query(BookingSlotClaim).count() == 0
    assert _cancellations("owner") == before + 1

    refund = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.booking_id == booking.id, LedgerEntry.kind == LedgerEntryKind.EARNED.value)
        .one()
    )
    assert refund.amount == 20

    events = [event for event in captured_events if isinstance(event, BookingCancelled)]
    assert len(events) == 1
    assert events[0].refund_amount == 20

    # the hours are bookable again
    rebooked = booking_service.create(snapshot(owner), today, "10:00", "11:00")
    assert rebooked.status == BookingStatus.CONFIRMED.value


def test_cancel_round_trip_preserves_balance_and_history(
    booking_service: BookingService, make_account, snapshot, today
) -> None:
    owner = make_account(coins=55)

    for _ in range(3):
        booking = booking_service.create(snapshot(owner), today, "18:00", "20:00")
        booking_service.cancel(booking.id, snapshot(owner))

    assert booking_service.coin_ledger.reconcile(owner.id) == (55, 55)


def test_admin_can_cancel_someone_elses_booking(
    booking_service: BookingService, make_account, snapshot, today
) -> None:
    owner = make_account(coins=100)
    admin = make_account("Admin", role=AccountRole.ADMIN)
    booking = booking_service.create(snapshot(owner), today, "09:00", "10:00")
    before = _cancellations("admin")

    cancelled = booking_service.cancel(booking.id, snapshot(admin))

    assert cancelled.cancelled_by_id == admin.id
    # refund goes to the owner, not the admin
    assert booking_service.coin_ledger.balance(owner.id) == 100
    assert booking_service.coin_ledger.balance(admin.id) == 0
    assert _cancellations("admin") == before + 1


def test_other_members_cannot_cancel(
    booking_service: BookingService, make_account, snapshot, today
) -> None:
    owner = make_account(coins=100)
    partner = make_account()
    booking = booking_service.create(
        snapshot(owner), today, "09:00", "10:00", roster_ids=[owner.id, partner.id]
    )

    with pytest.raises(ForbiddenException):
        booking_service.cancel(booking.id, snapshot(partner))


def test_second_cancel_is_rejected_and_refund_happens_once(
    booking_service: BookingService, make_account, snapshot, today
) -> None:
    owner = make_account(coins=100)
    booking = booking_service.create(snapshot(owner), today, "09:00", "10:00")
    booking_service.cancel(booking.id, snapshot(owner))

    with pytest.raises(AlreadyCancelledException):
        booking_service.cancel(booking.id, snapshot(owner))

    assert booking_service.coin_ledger.balance(owner.id) == 100


def test_completed_booking_cannot_be_cancelled(
    booking_service: BookingService, make_account, snapshot, today, clock
) -> None:
    owner = make_account(coins=100)
    booking = booking_service.create(snapshot(owner), today, "09:00", "10:00")
    clock.advance(hours=2)

    with pytest.raises(AlreadyCompletedException):
        booking_service.cancel(booking.id, snapshot(owner))


def test_session_in_progress_can_still_be_cancelled(
    booking_service: BookingService, make_account, snapshot, today, clock
) -> None:
    owner = make_account(coins=100)
    booking = booking_service.create(snapshot(owner), today, "09:00", "11:00")
    clock.advance(hours=1)  # 09:30

    cancelled = booking_service.cancel(booking.id, snapshot(owner))

    assert cancelled.status == BookingStatus.CANCELLED.value


def test_exempt_cancel_refunds_nothing(
    booking_service: BookingService, make_account, snapshot, today
) -> None:
    superadmin = make_account(role=AccountRole.SUPERADMIN)
    booking = booking_service.create(snapshot(superadmin), today, "09:00", "10:00")

    booking_service.cancel(booking.id, snapshot(superadmin))

    assert booking_service.coin_ledger.reconcile(superadmin.id) == (0, 0)


@pytest.mark.parametrize("booking_id", ["not-a-ulid", ""])
def test_cancel_malformed_id_is_not_found(
    booking_service: BookingService, make_account, snapshot, booking_id: str
) -> None:
    owner = make_account()
    with pytest.raises(NotFoundException):
        booking_service.cancel(booking_id, snapshot(owner))


def test_cancel_unknown_booking_is_not_found(
    booking_service: BookingService, make_account, snapshot
) -> None:
    owner = make_account()
    with pytest.raises(NotFoundException) as exc_info:
        booking_service.cancel(generate_ulid(), snapshot(owner))
    assert exc_info.value.details["resource"] == "Booking"
