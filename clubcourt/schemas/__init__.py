"""
Pydantic schemas for the club court engine.
"""

from .account import AccountSnapshot
from .allocation import AllocationSummary, MemberShare, PaymentAllocation, RosterMember
from .schedule import DaySchedule, DaySummary, SlotView, WeatherSnapshot

__all__ = [
    "AccountSnapshot",
    "AllocationSummary",
    "DaySchedule",
    "DaySummary",
    "MemberShare",
    "PaymentAllocation",
    "RosterMember",
    "SlotView",
    "WeatherSnapshot",
]
