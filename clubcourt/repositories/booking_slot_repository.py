"""Repository for per-hour slot claims."""

from datetime import date
import logging
from typing import List

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..models.booking_slot import BookingSlotClaim
from ..utils.slot_calendar import SlotRange
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingSlotRepository(BaseRepository[BookingSlotClaim]):
    def __init__(self, db: Session):
        super().__init__(db, BookingSlotClaim)

    def claim(self, booking_id: str, booking_date: date, covered: SlotRange) -> List[BookingSlotClaim]:
        """
        Insert one claim per covered hour and flush.

        Raises IntegrityError when any hour is already held.
        """
        claims = [
            BookingSlotClaim(booking_id=booking_id, booking_date=booking_date, slot_hour=hour)
            for hour in covered.hours()
        ]
        self.db.add_all(claims)
        self.db.flush()
        return claims

    def release(self, booking_id: str) -> int:
        result = self.db.execute(
            delete(BookingSlotClaim)
            .where(BookingSlotClaim.booking_id == booking_id)
            .execution_options(synchronize_session=False)
        )
        self.logger.debug("Released %s slot claims for booking %s", result.rowcount, booking_id)
        return result.rowcount

    def claimed_hours(self, booking_date: date) -> List[int]:
        query = (
            self.db.query(BookingSlotClaim.slot_hour)
            .filter(BookingSlotClaim.booking_date == booking_date)
            .order_by(BookingSlotClaim.slot_hour.asc())
        )
        return [row[0] for row in self._execute_query(query)]
