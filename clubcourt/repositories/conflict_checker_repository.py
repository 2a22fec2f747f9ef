# clubcourt/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository

Loads the bookings that can occupy the court on a given day. Only the
fields needed for range comparison are required, so rosters are not
loaded here.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_active_bookings_for_date(
        self, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Get all non-cancelled bookings on a date.

        Args:
            check_date: The date to check for conflicts
            exclude_booking_id: Optional booking ID to exclude from results

        Returns:
            Bookings ordered by start slot
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.booking_date == check_date,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_slot.asc()).all()
        except Exception as e:
            self.logger.error(f"Error getting bookings for {check_date}: {str(e)}")
            raise RepositoryException(f"Failed to get bookings for conflict check: {str(e)}") from e

    def get_active_bookings_for_range(self, start_date: date, end_date: date) -> List[Booking]:
        """Non-cancelled bookings between two dates, inclusive."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.booking_date >= start_date,
                    Booking.booking_date <= end_date,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .order_by(Booking.booking_date.asc(), Booking.start_slot.asc())
                .all()
            )
        except Exception as e:
            self.logger.error(f"Error getting bookings {start_date}..{end_date}: {str(e)}")
            raise RepositoryException(f"Failed to get bookings for range: {str(e)}") from e
