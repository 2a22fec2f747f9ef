# clubcourt/services/schedule_service.py
"""
Schedule Service

Read-only views of the court calendar: one day slot by slot, a run of
days, and per-day occupancy counts. Weather is best effort; a failing
provider never blocks the schedule.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import InvalidRangeException
from ..core.timezone_utils import get_club_now
from ..integrations.weather import NullWeatherProvider, WeatherProvider
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from ..schemas.schedule import DaySchedule, DaySummary, SlotView, WeatherSnapshot
from ..utils.slot_calendar import label_for_hour, slots
from .base import BaseService

logger = logging.getLogger(__name__)


class ScheduleService(BaseService):
    """Service for court availability views."""

    def __init__(
        self,
        db: Session,
        weather_provider: Optional[WeatherProvider] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_conflict_checker_repository(db)
        self.weather_provider = weather_provider or NullWeatherProvider()
        self._now = now_provider or get_club_now

    @BaseService.measure_operation("day_view")
    def day_view(self, target_date: date) -> DaySchedule:
        """
        Every slot of the day with its availability.

        Args:
            target_date: The day to render

        Returns:
            DaySchedule with one SlotView per slot label
        """
        bookings = self.run_query(
            "day_view", lambda: self.repository.get_active_bookings_for_date(target_date)
        )
        occupancy = self._occupancy(bookings)
        forecast = self._forecast(target_date)

        views = [
            SlotView(
                slot=label,
                is_available=label not in occupancy,
                booking_id=occupancy.get(label),
                weather=forecast.get(label),
            )
            for label in slots()
        ]
        return DaySchedule(date=target_date, slots=views)

    @BaseService.measure_operation("week_view")
    def week_view(self, start_date: date, num_days: int = 7) -> List[DaySchedule]:
        """Consecutive day views from ``start_date``; days already past are skipped."""
        today = self._now().date()
        return [self.day_view(day) for day in self._days(start_date, num_days) if day >= today]

    @BaseService.measure_operation("week_summary")
    def week_summary(self, start_date: date, num_days: int = 7) -> List[DaySummary]:
        days = self._days(start_date, num_days)
        bookings = self.run_query(
            "week_summary",
            lambda: self.repository.get_active_bookings_for_range(days[0], days[-1]),
        )

        by_day: Dict[date, List[Booking]] = {day: [] for day in days}
        for booking in bookings:
            by_day.setdefault(booking.booking_date, []).append(booking)

        total = len(slots())
        summaries = []
        for day in days:
            occupied = len(self._occupancy(by_day[day]))
            summaries.append(
                DaySummary(
                    date=day,
                    total_slots=total,
                    available_slots=total - occupied,
                    occupied_slots=occupied,
                    reservation_count=len(by_day[day]),
                )
            )
        return summaries

    def _days(self, start_date: date, num_days: int) -> List[date]:
        if num_days < 1 or num_days > settings.max_schedule_days:
            raise InvalidRangeException(
                f"Schedule views cover 1 to {settings.max_schedule_days} days",
                num_days=num_days,
            )
        return [start_date + timedelta(days=offset) for offset in range(num_days)]

    def _occupancy(self, bookings: List[Booking]) -> Dict[str, str]:
        """Map each occupied slot label to the booking holding it."""
        occupied: Dict[str, str] = {}
        for booking in bookings:
            for hour in booking.slot_range.hours():
                occupied.setdefault(label_for_hour(hour), booking.id)
        return occupied

    def _forecast(self, target_date: date) -> Mapping[str, WeatherSnapshot]:
        try:
            forecast = self.weather_provider.forecast(target_date)
        except Exception as weather_error:
            logger.warning(f"Weather lookup failed for {target_date}: {weather_error}")
            return {}
        return forecast or {}
