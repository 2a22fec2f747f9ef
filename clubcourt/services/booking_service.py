# clubcourt/services/booking_service.py
"""
Booking Service

Orchestrates the reservation lifecycle on the shared court:
- create: validate, check conflicts and dues, charge coins, persist
- cancel: permission and state checks, release slots, refund coins
- settle_payment: validate a completed session's cash payment

Bookings go straight to CONFIRMED. COMPLETED is never written here; a
booking counts as completed once its end slot has passed on the club
clock.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AlreadyCancelledException,
    AlreadyCompletedException,
    AlreadySettledException,
    AmountMismatchException,
    FeesUnpaidException,
    ForbiddenException,
    InvalidDateException,
    InvalidRangeException,
    NotCompletedException,
    NotFoundException,
    NotInRosterException,
    SlotConflictException,
    UnsettledPaymentsException,
    ValidationException,
)
from ..core.timezone_utils import get_club_now
from ..core.ulid_helper import is_valid_ulid
from ..events.booking_events import BookingCancelled, BookingCreated, PaymentSettled, emit
from ..models.account import MembershipClass
from ..models.booking import Booking
from ..models.ledger import LedgerEntryKind
from ..models.payment import PaymentRecord, PaymentStatus, PlayType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.account import AccountSnapshot
from ..schemas.allocation import PaymentAllocation, RosterMember
from ..utils.slot_calendar import SlotRange, slot_range
from .base import BaseService
from .coin_ledger import CoinLedger
from .conflict_checker import ConflictChecker
from .payment_allocator import allocate, amount_matches, parse_amount
from .rate_resolver import RatePolicy

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing booking"
COMMIT_CONFLICT_MESSAGE = "This time slot was just booked by someone else"
CENTS = Decimal("0.01")


class BookingService(BaseService):
    """Service for the court reservation lifecycle."""

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        coin_ledger: Optional[CoinLedger] = None,
        rate_policy: Optional[RatePolicy] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_booking_slot_repository(db)
        self.account_repository = RepositoryFactory.create_account_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.coin_ledger = coin_ledger or CoinLedger(db)
        self.rate_policy = rate_policy or RatePolicy.from_settings()
        self._now = now_provider or get_club_now

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create(
        self,
        actor: AccountSnapshot,
        booking_date: date,
        start: str,
        end: str,
        roster_ids: Optional[Sequence[str]] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Reserve the court for [start, end) on ``booking_date``.

        Args:
            actor: Snapshot of the booking account
            booking_date: Calendar day of the session
            start: Start slot label, e.g. "09:00"
            end: End slot label (exclusive), e.g. "11:00"
            roster_ids: Ordered participant account ids; defaults to the actor
            notes: Optional free text

        Returns:
            The confirmed booking

        Raises:
            InvalidDateException, InvalidRangeException, ValidationException,
            NotFoundException, SlotConflictException, FeesUnpaidException,
            UnsettledPaymentsException, InsufficientBalanceException,
            StorageUnavailableException
        """
        self.log_operation(
            "create_booking",
            account_id=actor.account_id,
            date=str(booking_date),
            start=start,
            end=end,
        )

        # 1. No past-dated bookings
        today = self._now().date()
        if booking_date < today:
            raise InvalidDateException(booking_date, today)

        # 2. Slot range and request shape
        covered = self._validate_range(start, end)
        cleaned_notes = self._clean_notes(notes)
        roster = self._resolve_roster(actor, roster_ids)

        # 3. Overlap with live bookings
        if self.conflict_checker.has_conflict(booking_date, start, end):
            prometheus_metrics.record_booking_conflict("precheck")
            raise SlotConflictException(
                message=GENERIC_CONFLICT_MESSAGE,
                details=self._build_conflict_details(booking_date, covered),
            )

        # 4. Membership fees
        if not actor.fees_paid:
            raise FeesUnpaidException(actor.account_id)

        # 5. Outstanding cash dues
        if not actor.is_exempt:
            pending = self.run_query(
                "count_pending_payments",
                lambda: self.payment_repository.count_pending_for_account(actor.account_id),
            )
            if pending:
                raise UnsettledPaymentsException(pending)

        # 6. Persist, claim slots and charge coins in one transaction
        coin_cost = 0 if actor.is_exempt else covered.duration_hours * settings.booking_coin_cost_per_hour

        def _persist() -> Booking:
            booking = self.repository.create_with_roster(
                owner_id=actor.account_id,
                booking_date=booking_date,
                start_slot=covered.start_label,
                end_slot=covered.end_label,
                duration_hours=covered.duration_hours,
                coin_cost=coin_cost,
                roster_ids=roster,
                notes=cleaned_notes,
            )
            self.slot_repository.claim(booking.id, booking_date, covered)
            self.coin_ledger.debit(
                actor.account_id,
                coin_cost,
                f"Court reservation {booking_date} {covered}",
                booking.id,
                exempt=actor.is_exempt,
                use_transaction=False,
            )
            return booking

        try:
            booking = self.run_in_transaction("create_booking", _persist)
        except IntegrityError as exc:
            prometheus_metrics.record_booking_conflict("commit")
            details = self._build_conflict_details(booking_date, covered)
            details["constraint"] = self._resolve_integrity_constraint(exc)
            raise SlotConflictException(message=COMMIT_CONFLICT_MESSAGE, details=details) from exc

        # 7. Notify
        prometheus_metrics.record_booking_created(actor.is_exempt)
        emit(
            BookingCreated(
                booking_id=booking.id,
                owner_id=booking.owner_id,
                booking_date=booking.booking_date,
                start_slot=booking.start_slot,
                end_slot=booking.end_slot,
                roster_ids=tuple(booking.roster_ids),
                coin_cost=booking.coin_cost,
                created_at=datetime.now(timezone.utc),
            )
        )
        return booking

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_booking")
    def cancel(self, booking_id: str, actor: AccountSnapshot) -> Booking:
        """
        Cancel a live booking and refund its coin cost to the owner.

        The refund is the full amount charged at creation; exempt owners
        were charged nothing and get a zero-amount refund entry.
        """
        booking = self._get_booking_or_404(booking_id)

        is_owner = booking.owner_id == actor.account_id
        if not is_owner and not actor.is_admin:
            raise ForbiddenException(
                "Only the booking owner or an admin can cancel this booking",
                details={"booking_id": booking_id},
            )
        if booking.is_cancelled:
            raise AlreadyCancelledException(booking_id)
        if booking.is_completed(self._now()):
            raise AlreadyCompletedException(booking_id)

        owner_id = booking.owner_id
        refund = booking.coin_cost
        label = f"{booking.booking_date} {booking.slot_range}"
        cancelled_at = datetime.now(timezone.utc)

        def _cancel() -> None:
            if not self.repository.mark_cancelled(booking_id, actor.account_id, cancelled_at):
                raise AlreadyCancelledException(booking_id)
            self.slot_repository.release(booking_id)
            self.coin_ledger.credit(
                owner_id,
                refund,
                f"Refund for cancelled reservation {label}",
                booking_id,
                kind=LedgerEntryKind.EARNED,
                use_transaction=False,
            )

        self.run_in_transaction("cancel_booking", _cancel)
        self.repository.refresh(booking)

        prometheus_metrics.record_booking_cancelled(by_admin=not is_owner)
        emit(
            BookingCancelled(
                booking_id=booking_id,
                owner_id=owner_id,
                cancelled_by=actor.account_id,
                booking_date=booking.booking_date,
                start_slot=booking.start_slot,
                refund_amount=refund,
                cancelled_at=cancelled_at,
            )
        )
        return booking

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settle_booking_payment")
    def settle_payment(
        self,
        booking_id: str,
        payer_id: str,
        claimed_amount: Union[Decimal, int, float, str],
        notes: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Log a cash payment for a completed session.

        The claimed amount must match the session's grand total for the
        full roster. The record starts as pending until an admin confirms
        the cash was received.
        """
        booking = self._get_booking_or_404(booking_id)
        if booking.is_cancelled:
            raise AlreadyCancelledException(booking_id)
        if not booking.is_completed(self._now()):
            raise NotCompletedException(booking_id)
        if not booking.includes(payer_id):
            raise NotInRosterException(booking_id, payer_id)

        existing = self.run_query(
            "find_booking_payment",
            lambda: self.payment_repository.get_for_account_booking(payer_id, booking_id),
        )
        if existing is not None:
            raise AlreadySettledException(
                "Payment already recorded for this reservation",
                booking_id=booking_id,
                account_id=payer_id,
            )

        allocation = self._allocate_for_roster(booking.roster_ids, booking.duration_hours)
        expected = allocation.summary.grand_total
        claimed = parse_amount(claimed_amount)
        if not amount_matches(expected, claimed):
            raise AmountMismatchException(expected=expected, got=claimed)

        share = allocation.share_for(payer_id)
        cleaned_notes = self._clean_notes(notes)

        def _persist() -> PaymentRecord:
            return self.payment_repository.create(
                account_id=payer_id,
                booking_id=booking_id,
                play_type=PlayType.RESERVATION.value,
                play_date=booking.booking_date,
                amount=expected.quantize(CENTS, rounding=ROUND_HALF_UP),
                status=PaymentStatus.PENDING.value,
                membership_class=share.membership_class.value,
                rate_per_hour=share.rate_per_hour.quantize(CENTS, rounding=ROUND_HALF_UP),
                hours_played=Decimal(booking.duration_hours),
                notes=cleaned_notes,
            )

        try:
            record = self.run_in_transaction("settle_booking_payment", _persist)
        except IntegrityError as exc:
            raise AlreadySettledException(
                "Payment already recorded for this reservation",
                booking_id=booking_id,
                account_id=payer_id,
            ) from exc

        prometheus_metrics.record_payment_settled(PlayType.RESERVATION.value)
        emit(
            PaymentSettled(
                payment_id=record.id,
                account_id=payer_id,
                play_type=PlayType.RESERVATION.value,
                amount=record.amount,
                booking_id=booking_id,
            )
        )
        return record

    @BaseService.measure_operation("quote_booking")
    def quote(self, roster_ids: Sequence[str], start: str, end: str) -> PaymentAllocation:
        """Price a prospective session without touching any state."""
        covered = self._validate_range(start, end)
        if not roster_ids:
            raise ValidationException("Roster must contain at least one player", code="EMPTY_ROSTER")
        return self._allocate_for_roster(list(roster_ids), covered.duration_hours)

    def allocation_for_booking(self, booking_id: str) -> PaymentAllocation:
        booking = self._get_booking_or_404(booking_id)
        return self._allocate_for_roster(booking.roster_ids, booking.duration_hours)

    # ------------------------------------------------------------------
    # Edits and queries
    # ------------------------------------------------------------------

    @BaseService.measure_operation("update_booking_details")
    def update_details(
        self,
        booking_id: str,
        actor: AccountSnapshot,
        roster_ids: Optional[Sequence[str]] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """Change roster or notes of a live booking. The coin cost is not revisited."""
        booking = self._get_booking_or_404(booking_id)
        if booking.owner_id != actor.account_id and not actor.is_admin:
            raise ForbiddenException(details={"booking_id": booking_id})
        if booking.is_cancelled:
            raise AlreadyCancelledException(booking_id)
        if booking.is_completed(self._now()):
            raise AlreadyCompletedException(booking_id)

        roster = self._resolve_roster(actor, roster_ids) if roster_ids is not None else None
        cleaned_notes = self._clean_notes(notes) if notes is not None else None

        def _update() -> Booking:
            if roster is not None:
                self.repository.replace_roster(booking, roster)
            if cleaned_notes is not None:
                booking.notes = cleaned_notes
                self.repository.flush()
            return booking

        return self.run_in_transaction("update_booking_details", _update)

    def get_booking(self, booking_id: str) -> Booking:
        return self._get_booking_or_404(booking_id)

    def list_for_account(
        self,
        account_id: str,
        *,
        include_cancelled: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        return self.run_query(
            "list_account_bookings",
            lambda: self.repository.list_for_account(
                account_id, include_cancelled=include_cancelled, limit=limit, offset=offset
            ),
        )

    def list_for_date(self, booking_date: date) -> List[Booking]:
        return self.run_query(
            "list_date_bookings", lambda: self.repository.list_for_date(booking_date)
        )

    @BaseService.measure_operation("list_unsettled_bookings")
    def list_unsettled_for_account(
        self, account_id: str, now: Optional[datetime] = None
    ) -> List[Booking]:
        """Completed sessions the account played in but has not logged a payment for."""
        now = now or self._now()
        candidates = self.run_query(
            "list_unsettled_bookings",
            lambda: self.repository.list_unpaid_on_roster(account_id, now.date()),
        )
        return [booking for booking in candidates if booking.is_completed(now)]

    def roster_payment_status(self, booking_id: str) -> Dict[str, Optional[str]]:
        """Payment status per roster member; None where nothing was logged."""
        booking = self._get_booking_or_404(booking_id)
        records = self.run_query(
            "list_booking_payments", lambda: self.payment_repository.list_for_booking(booking_id)
        )
        by_account = {record.account_id: record.status for record in records}
        return {account_id: by_account.get(account_id) for account_id in booking.roster_ids}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_booking_or_404(self, booking_id: str) -> Booking:
        if not booking_id or not is_valid_ulid(booking_id):
            raise NotFoundException(resource="Booking", resource_id=booking_id)
        booking = self.run_query("get_booking", lambda: self.repository.get_with_roster(booking_id))
        if booking is None:
            raise NotFoundException(resource="Booking", resource_id=booking_id)
        return booking

    def _validate_range(self, start: str, end: str) -> SlotRange:
        covered = slot_range(start, end)
        if covered.duration_hours > settings.max_booking_hours:
            raise InvalidRangeException(
                f"Bookings cannot exceed {settings.max_booking_hours} hours",
                start=start,
                end=end,
            )
        return covered

    def _clean_notes(self, notes: Optional[str]) -> Optional[str]:
        if notes is None:
            return None
        cleaned = notes.strip()
        if len(cleaned) > settings.notes_max_length:
            raise ValidationException(
                f"Notes cannot exceed {settings.notes_max_length} characters",
                code="NOTES_TOO_LONG",
                details={"length": len(cleaned)},
            )
        return cleaned or None

    def _resolve_roster(
        self, actor: AccountSnapshot, roster_ids: Optional[Sequence[str]]
    ) -> List[str]:
        """Validate the ordered roster; every member must be an active account."""
        roster = list(roster_ids) if roster_ids is not None else [actor.account_id]
        if not roster:
            raise ValidationException("Roster must contain at least one player", code="EMPTY_ROSTER")
        if len(set(roster)) != len(roster):
            raise ValidationException(
                "Each player can appear on the roster only once",
                code="DUPLICATE_ROSTER_MEMBER",
                details={"roster": roster},
            )

        found = self.run_query(
            "load_roster_accounts", lambda: self.account_repository.get_active_by_ids(roster)
        )
        found_ids = {account.id for account in found}
        for account_id in roster:
            if account_id not in found_ids:
                raise NotFoundException(resource="Account", resource_id=account_id)
        return roster

    def _allocate_for_roster(self, roster_ids: List[str], duration_hours: int) -> PaymentAllocation:
        accounts = self.run_query(
            "load_roster_accounts", lambda: self.account_repository.get_many(roster_ids)
        )
        by_id = {account.id: account for account in accounts}
        members = []
        for account_id in roster_ids:
            account = by_id.get(account_id)
            if account is None:
                raise NotFoundException(resource="Account", resource_id=account_id)
            members.append(
                RosterMember(
                    account_id=account_id,
                    membership_class=MembershipClass(account.membership_class),
                )
            )
        return allocate(members, duration_hours, self.rate_policy)

    def _build_conflict_details(self, booking_date: date, covered: SlotRange) -> Dict[str, Any]:
        return {
            "date": booking_date.isoformat(),
            "start": covered.start_label,
            "end": covered.end_label,
        }

    def _resolve_integrity_constraint(self, integrity_error: IntegrityError) -> str:
        """Best-effort name of the constraint that rejected the insert."""
        orig = getattr(integrity_error, "orig", None)
        diag = getattr(orig, "diag", None)
        constraint_name = getattr(diag, "constraint_name", "") if diag is not None else ""
        if constraint_name:
            return constraint_name
        text = str(orig or integrity_error)
        if "booking_slot_claims" in text:
            return "uq_booking_slot_claims_date_hour"
        return "unknown"


__all__ = ["BookingService", "GENERIC_CONFLICT_MESSAGE", "COMMIT_CONFLICT_MESSAGE"]
