# clubcourt/repositories/booking_repository.py
"""
Booking Repository

Data access for bookings and their ordered rosters. Status changes that
must happen exactly once (cancellation) are conditional UPDATEs whose
row count tells the service whether it won.
"""

from datetime import date, datetime
import logging
from typing import List, Optional, Sequence

from sqlalchemy import exists, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingParticipant,
    BookingStatus,
)
from ..models.payment import PaymentRecord
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create_with_roster(
        self,
        *,
        owner_id: str,
        booking_date: date,
        start_slot: str,
        end_slot: str,
        duration_hours: int,
        coin_cost: int,
        roster_ids: Sequence[str],
        notes: Optional[str] = None,
        status: str = BookingStatus.CONFIRMED.value,
    ) -> Booking:
        booking = Booking(
            owner_id=owner_id,
            booking_date=booking_date,
            start_slot=start_slot,
            end_slot=end_slot,
            duration_hours=duration_hours,
            coin_cost=coin_cost,
            notes=notes,
            status=status,
        )
        booking.participants = [
            BookingParticipant(account_id=account_id, position=position)
            for position, account_id in enumerate(roster_ids)
        ]
        self.db.add(booking)
        self.db.flush()
        return booking

    def get_with_roster(self, booking_id: str) -> Optional[Booking]:
        try:
            return (
                self.db.query(Booking)
                .options(selectinload(Booking.participants))
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load booking %s: %s", booking_id, exc)
            raise RepositoryException(f"Failed to load booking {booking_id}") from exc

    def replace_roster(self, booking: Booking, roster_ids: Sequence[str]) -> Booking:
        booking.participants.clear()
        # Flush removals first so the (booking, account) unique key can be reused.
        self.db.flush()
        booking.participants.extend(
            BookingParticipant(account_id=account_id, position=position)
            for position, account_id in enumerate(roster_ids)
        )
        self.db.flush()
        return booking

    def mark_cancelled(self, booking_id: str, cancelled_by_id: str, when: datetime) -> bool:
        """Cancel only if the booking is still live; False means someone else got there first."""
        stmt = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status.in_(
                    [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]
                ),
            )
            .values(
                status=BookingStatus.CANCELLED.value,
                cancelled_by_id=cancelled_by_id,
                cancelled_at=when,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded(booking_id, ["status", "cancelled_by_id", "cancelled_at"])
        return result.rowcount == 1

    def set_payment_status(self, booking_id: str, payment_status: str) -> None:
        self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(payment_status=payment_status)
            .execution_options(synchronize_session=False)
        )
        self._expire_loaded(booking_id, ["payment_status"])

    def list_for_account(
        self,
        account_id: str,
        *,
        include_cancelled: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        """Bookings the account owns or plays in, newest date first."""
        on_roster = exists().where(
            BookingParticipant.booking_id == Booking.id,
            BookingParticipant.account_id == account_id,
        )
        query = (
            self.db.query(Booking)
            .options(selectinload(Booking.participants))
            .filter(or_(Booking.owner_id == account_id, on_roster))
        )
        if not include_cancelled:
            query = query.filter(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        query = query.order_by(Booking.booking_date.desc(), Booking.start_slot.desc())
        return self._execute_query(query.offset(offset).limit(limit))

    def list_for_date(self, booking_date: date, *, include_cancelled: bool = False) -> List[Booking]:
        query = (
            self.db.query(Booking)
            .options(selectinload(Booking.participants))
            .filter(Booking.booking_date == booking_date)
        )
        if not include_cancelled:
            query = query.filter(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        return self._execute_query(query.order_by(Booking.start_slot.asc()))

    def list_unpaid_on_roster(self, account_id: str, up_to: date) -> List[Booking]:
        """
        Live bookings up to ``up_to`` where the account plays and has no
        payment record yet. Whether each one has ended is left to the caller.
        """
        on_roster = exists().where(
            BookingParticipant.booking_id == Booking.id,
            BookingParticipant.account_id == account_id,
        )
        has_payment = exists().where(
            PaymentRecord.booking_id == Booking.id,
            PaymentRecord.account_id == account_id,
        )
        query = (
            self.db.query(Booking)
            .options(selectinload(Booking.participants))
            .filter(
                on_roster,
                ~has_payment,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.booking_date <= up_to,
            )
            .order_by(Booking.booking_date.asc(), Booking.start_slot.asc())
        )
        return self._execute_query(query)

