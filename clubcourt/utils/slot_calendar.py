# clubcourt/utils/slot_calendar.py
"""
Fixed daily grid of bookable court hours.

The court opens at 05:00 and closes at 22:00. Each hourly mark is a
slot label ("05:00" ... "22:00"); a booking covers the half-open range
[start, end), so "22:00" is only ever an end mark.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Iterator, Optional, Tuple

from ..core.exceptions import InvalidRangeException
from ..core.timezone_utils import club_datetime, get_club_timezone, to_club_time

logger = logging.getLogger(__name__)

OPENING_HOUR = 5
CLOSING_HOUR = 22

SLOT_LABELS: Tuple[str, ...] = tuple(
    f"{hour:02d}:00" for hour in range(OPENING_HOUR, CLOSING_HOUR + 1)
)
_HOUR_BY_LABEL = {label: OPENING_HOUR + index for index, label in enumerate(SLOT_LABELS)}


def slots() -> Tuple[str, ...]:
    """Return the ordered slot labels."""
    return SLOT_LABELS


def is_valid_slot(label: Optional[str]) -> bool:
    return label in _HOUR_BY_LABEL


def slot_hour(label: str) -> int:
    """Hour of day for a slot label."""
    try:
        return _HOUR_BY_LABEL[label]
    except (KeyError, TypeError):
        raise InvalidRangeException(f"Unknown time slot: {label}", slot=label)


def label_for_hour(hour: int) -> str:
    label = f"{hour:02d}:00"
    if label not in _HOUR_BY_LABEL:
        raise InvalidRangeException(f"Hour {hour} is outside court hours", hour=hour)
    return label


@dataclass(frozen=True)
class SlotRange:
    """Half-open [start_hour, end_hour) range on one calendar day."""

    start_hour: int
    end_hour: int

    @property
    def duration_hours(self) -> int:
        return self.end_hour - self.start_hour

    @property
    def start_label(self) -> str:
        return label_for_hour(self.start_hour)

    @property
    def end_label(self) -> str:
        return label_for_hour(self.end_hour)

    def overlaps(self, other: "SlotRange") -> bool:
        return self.start_hour < other.end_hour and other.start_hour < self.end_hour

    def hours(self) -> range:
        return range(self.start_hour, self.end_hour)

    def __str__(self) -> str:
        return f"{self.start_label}-{self.end_label}"


def slot_range(start: str, end: str) -> SlotRange:
    """Validate a pair of labels and return the covered range."""
    start_hour = slot_hour(start)
    end_hour = slot_hour(end)
    if end_hour <= start_hour:
        raise InvalidRangeException("End time must be after start time", start=start, end=end)
    return SlotRange(start_hour, end_hour)


def legacy_slot_range(label: str) -> SlotRange:
    """
    Range for a legacy single-slot booking, which occupies exactly one hour.

    Stored rows are never rejected: a row at the closing mark, or one whose
    label is off the grid, comes back as an empty range at closing time.
    """
    start_hour = _HOUR_BY_LABEL.get(label)
    if start_hour is None or start_hour >= CLOSING_HOUR:
        logger.warning("Legacy booking slot %r has no bookable hour", label)
        return SlotRange(CLOSING_HOUR, CLOSING_HOUR)
    return SlotRange(start_hour, start_hour + 1)


def duration_hours(start: str, end: str) -> int:
    return slot_range(start, end).duration_hours


def enumerate_slots(start: str, end: str) -> Iterator[str]:
    """Yield each unit slot label covered by [start, end)."""
    covered = slot_range(start, end)
    for hour in covered.hours():
        yield label_for_hour(hour)


def contains(start: str, end: str, label: str) -> bool:
    """Whether the unit slot starting at ``label`` lies inside [start, end)."""
    return slot_hour(label) in slot_range(start, end).hours()


def is_range_completed(target_date: date, end_hour: int, now: datetime) -> bool:
    """
    Whether a session on ``target_date`` ending at ``end_hour`` is over.

    Aware values of ``now`` are converted to club time; naive values are
    read as club wall-clock time.
    """
    if now.tzinfo is None:
        now = get_club_timezone().localize(now)
    return to_club_time(now) >= club_datetime(target_date, end_hour)
