# clubcourt/services/conflict_checker.py
"""
Conflict Checker Service

Decides whether a proposed [start, end) range on a date overlaps any
non-cancelled booking. Two half-open ranges conflict iff each starts
before the other ends; single-slot legacy rows count as one hour.

The check is advisory against concurrent writers. The slot claim
unique constraint is what finally keeps overlapping bookings out.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..utils.slot_calendar import SlotRange, slot_range
from .base import BaseService

logger = logging.getLogger(__name__)


class ConflictChecker(BaseService):
    """Service for checking booking conflicts on the shared court."""

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("has_conflict")
    def has_conflict(
        self,
        check_date: date,
        start: str,
        end: str,
        excluding_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a time range overlaps any live booking.

        Args:
            check_date: The date to check
            start: Start slot label
            end: End slot label (exclusive)
            excluding_booking_id: Optional booking ID to ignore (for edits)

        Returns:
            True on the first overlap found
        """
        candidate = slot_range(start, end)
        bookings = self.run_query(
            "conflict_check",
            lambda: self.repository.get_active_bookings_for_date(check_date, excluding_booking_id),
        )
        for booking in bookings:
            if candidate.overlaps(booking.slot_range):
                self.logger.warning(
                    f"Booking conflict on {check_date}: {candidate} overlaps "
                    f"{booking.slot_range} (booking {booking.id})"
                )
                return True
        return False

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        check_date: date,
        start: str,
        end: str,
        excluding_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List every live booking that overlaps the range.

        Returns:
            List of conflicts with booking details
        """
        candidate = slot_range(start, end)
        bookings = self.run_query(
            "conflict_list",
            lambda: self.repository.get_active_bookings_for_date(check_date, excluding_booking_id),
        )

        conflicts = []
        for booking in bookings:
            existing: SlotRange = booking.slot_range
            if candidate.overlaps(existing):
                conflicts.append(
                    {
                        "booking_id": booking.id,
                        "start_slot": existing.start_label,
                        "end_slot": existing.end_label,
                        "owner_id": booking.owner_id,
                        "status": booking.status,
                    }
                )

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts on {check_date} between {start}-{end}"
            )

        return conflicts
