# clubcourt/services/payment_service.py
"""
Payment Service

Cash payments outside the reservation flow and the admin review of all
payment records:
- settle_open_play: log a walk-in session priced as a one-player roster
- update_status: pending -> paid | rejected
- count_unsettled / list_for_account: dues visibility
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Callable, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AlreadySettledException,
    AmountMismatchException,
    InvalidRangeException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import get_club_now
from ..events.booking_events import PaymentSettled, emit
from ..models.booking import BookingPaymentStatus
from ..models.payment import PaymentRecord, PaymentStatus, PlayType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.account import AccountSnapshot
from ..schemas.allocation import RosterMember
from ..utils.slot_calendar import CLOSING_HOUR, is_valid_slot, slot_hour
from .base import BaseService
from .payment_allocator import allocate, amount_matches, parse_amount
from .rate_resolver import RatePolicy

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
HALF_HOUR = Decimal("0.5")
MAX_SESSION_HOURS = Decimal("8")


def _parse_hours(hours_played: Union[Decimal, int, float, str]) -> Decimal:
    try:
        hours = Decimal(str(hours_played))
    except InvalidOperation as exc:
        raise ValidationException(
            "Hours played must be a number", code="INVALID_HOURS", details={"hours": hours_played}
        ) from exc
    if not hours.is_finite() or hours < HALF_HOUR or hours > MAX_SESSION_HOURS or hours % HALF_HOUR != 0:
        raise ValidationException(
            "Hours played must be between 0.5 and 8 in half-hour steps",
            code="INVALID_HOURS",
            details={"hours": str(hours)},
        )
    return hours


class PaymentService(BaseService):
    """Service for cash payment records."""

    def __init__(
        self,
        db: Session,
        rate_policy: Optional[RatePolicy] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_payment_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.rate_policy = rate_policy or RatePolicy.from_settings()
        self._now = now_provider or get_club_now

    @BaseService.measure_operation("settle_open_play")
    def settle_open_play(
        self,
        actor: AccountSnapshot,
        play_date: date,
        time_slot: str,
        hours_played: Union[Decimal, int, float, str],
        claimed_amount: Union[Decimal, int, float, str],
        attendee_names: Optional[Sequence[str]] = None,
        notes: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Log the actor's cash payment for an open-play session.

        Args:
            actor: The paying account
            play_date: Day the session was played
            time_slot: Slot label the session started at
            hours_played: 0.5 to 8 hours in half-hour steps
            claimed_amount: What the actor says they paid
            attendee_names: Other people present, for the admin's reference
            notes: Optional free text

        Returns:
            The pending payment record
        """
        # 1. Request shape
        hours = _parse_hours(hours_played)
        if not is_valid_slot(time_slot) or slot_hour(time_slot) >= CLOSING_HOUR:
            raise InvalidRangeException(f"Invalid starting slot: {time_slot}", slot=time_slot)
        names = [name.strip() for name in (attendee_names or []) if name and name.strip()]
        if len(names) > settings.max_open_play_players:
            raise ValidationException(
                f"At most {settings.max_open_play_players} attendees can be listed",
                code="TOO_MANY_ATTENDEES",
                details={"count": len(names)},
            )
        if notes is not None and len(notes.strip()) > settings.notes_max_length:
            raise ValidationException(
                f"Notes cannot exceed {settings.notes_max_length} characters",
                code="NOTES_TOO_LONG",
            )
        today = self._now().date()
        if play_date > today:
            raise ValidationException(
                "Open-play payments can only be logged for sessions already played",
                code="FUTURE_PLAY_DATE",
                details={"date": play_date.isoformat(), "today": today.isoformat()},
            )

        # 2. One record per account and session
        existing = self.run_query(
            "find_open_play_payment",
            lambda: self.repository.get_open_play(actor.account_id, play_date, time_slot),
        )
        if existing is not None:
            raise AlreadySettledException(
                "Payment already recorded for this session",
                account_id=actor.account_id,
                date=play_date.isoformat(),
                time_slot=time_slot,
            )

        # 3. Price and compare
        allocation = allocate(
            [RosterMember(account_id=actor.account_id, membership_class=actor.membership_class)],
            hours,
            self.rate_policy,
        )
        expected = allocation.summary.grand_total
        claimed = parse_amount(claimed_amount)
        if not amount_matches(expected, claimed):
            raise AmountMismatchException(expected=expected, got=claimed)
        share = allocation.share_for(actor.account_id)

        def _persist() -> PaymentRecord:
            return self.repository.create(
                account_id=actor.account_id,
                play_type=PlayType.OPEN_PLAY.value,
                play_date=play_date,
                time_slot=time_slot,
                amount=expected.quantize(CENTS, rounding=ROUND_HALF_UP),
                status=PaymentStatus.PENDING.value,
                membership_class=actor.membership_class.value,
                rate_per_hour=share.rate_per_hour.quantize(CENTS, rounding=ROUND_HALF_UP),
                hours_played=hours,
                attendee_names=names or None,
                notes=notes.strip() if notes and notes.strip() else None,
            )

        try:
            record = self.run_in_transaction("settle_open_play", _persist)
        except IntegrityError as exc:
            raise AlreadySettledException(
                "Payment already recorded for this session",
                account_id=actor.account_id,
                date=play_date.isoformat(),
                time_slot=time_slot,
            ) from exc

        prometheus_metrics.record_payment_settled(PlayType.OPEN_PLAY.value)
        emit(
            PaymentSettled(
                payment_id=record.id,
                account_id=actor.account_id,
                play_type=PlayType.OPEN_PLAY.value,
                amount=record.amount,
            )
        )
        return record

    @BaseService.measure_operation("update_payment_status")
    def update_status(
        self,
        payment_id: str,
        status: Union[PaymentStatus, str],
        resolved_by: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Admin review of a pending record.

        Only pending -> paid and pending -> rejected are allowed. Marking a
        reservation payment paid also marks its booking paid.
        """
        requested = PaymentStatus(status)
        record = self.run_query("get_payment", lambda: self.repository.get_by_id(payment_id))
        if record is None:
            raise NotFoundException(resource="Payment", resource_id=payment_id)
        if requested == PaymentStatus.PENDING or record.status != PaymentStatus.PENDING.value:
            raise InvalidStatusTransitionException("payment", record.status, requested.value)

        def _transition() -> None:
            moved = self.repository.transition_from_pending(
                payment_id,
                status=requested,
                resolved_by_id=resolved_by,
                when=datetime.now(timezone.utc),
            )
            if not moved:
                raise InvalidStatusTransitionException("payment", "resolved", requested.value)
            if requested == PaymentStatus.PAID and record.booking_id:
                self.booking_repository.set_payment_status(
                    record.booking_id, BookingPaymentStatus.PAID.value
                )

        self.run_in_transaction("update_payment_status", _transition)
        self.repository.refresh(record)
        self.log_operation(
            "update_payment_status",
            payment_id=payment_id,
            status=requested.value,
            resolved_by=resolved_by,
        )
        return record

    def count_unsettled(self, account_id: str) -> int:
        """Pending records; any of these blocks new bookings for non-exempt accounts."""
        return self.run_query(
            "count_unsettled_payments",
            lambda: self.repository.count_pending_for_account(account_id),
        )

    def list_for_account(
        self,
        account_id: str,
        *,
        status: Optional[PaymentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PaymentRecord]:
        return self.run_query(
            "list_account_payments",
            lambda: self.repository.list_for_account(
                account_id, status=status, limit=limit, offset=offset
            ),
        )
