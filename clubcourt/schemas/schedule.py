"""Court schedule views."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel


class WeatherSnapshot(StrictModel):
    """Forecast for one hourly slot; every field is optional."""

    temperature: Optional[float] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    icon: Optional[str] = None


class SlotView(StrictModel):
    slot: str
    is_available: bool
    booking_id: Optional[str] = None
    weather: Optional[WeatherSnapshot] = None


class DaySchedule(StrictModel):
    date: date
    slots: List[SlotView] = Field(default_factory=list)

    @property
    def available_slots(self) -> List[str]:
        return [view.slot for view in self.slots if view.is_available]


class DaySummary(StrictModel):
    date: date
    total_slots: int
    available_slots: int
    occupied_slots: int
    reservation_count: int
