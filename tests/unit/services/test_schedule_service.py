from datetime import timedelta
from unittest.mock import Mock

import pytest

from clubcourt.core.exceptions import InvalidRangeException
from clubcourt.integrations.weather import StaticWeatherProvider
from clubcourt.schemas.schedule import WeatherSnapshot
from clubcourt.services.schedule_service import ScheduleService


@pytest.fixture
def booked_day(booking_service, make_account, snapshot, today):
    owner = make_account(coins=200)
    morning = booking_service.create(snapshot(owner), today, "09:00", "11:00")
    evening = booking_service.create(snapshot(owner), today, "20:00", "22:00")
    return morning, evening


def test_day_view_marks_every_covered_slot(db, clock, today, booked_day) -> None:
    morning, evening = booked_day
    service = ScheduleService(db, now_provider=clock)

    day = service.day_view(today)

    assert len(day.slots) == 18
    by_slot = {view.slot: view for view in day.slots}
    assert by_slot["09:00"].booking_id == morning.id
    assert by_slot["10:00"].booking_id == morning.id
    assert by_slot["11:00"].is_available is True
    assert by_slot["21:00"].booking_id == evening.id
    # the closing mark is never covered by a half-open range
    assert by_slot["22:00"].is_available is True
    assert "09:00" not in day.available_slots


def test_cancelled_booking_frees_slots_in_view(
    db, clock, today, booked_day, booking_service, snapshot, make_account
) -> None:
    morning, _ = booked_day
    owner = booking_service.get_booking(morning.id).owner
    booking_service.cancel(morning.id, snapshot(owner))

    day = ScheduleService(db, now_provider=clock).day_view(today)

    assert "09:00" in day.available_slots


def test_weather_is_attached_when_available(db, clock, today) -> None:
    provider = StaticWeatherProvider()
    provider.set_forecast(today, {"06:00": WeatherSnapshot(temperature=27.5, condition="Clear")})
    service = ScheduleService(db, weather_provider=provider, now_provider=clock)

    day = service.day_view(today)

    by_slot = {view.slot: view for view in day.slots}
    assert by_slot["06:00"].weather.temperature == 27.5
    assert by_slot["07:00"].weather is None


def test_weather_failures_do_not_break_schedule(db, clock, today) -> None:
    provider = Mock()
    provider.forecast.side_effect = RuntimeError("upstream timeout")
    service = ScheduleService(db, weather_provider=provider, now_provider=clock)

    day = service.day_view(today)

    assert all(view.weather is None for view in day.slots)


def test_week_view_skips_past_days(db, clock, today) -> None:
    service = ScheduleService(db, now_provider=clock)

    days = service.week_view(today - timedelta(days=2), num_days=5)

    assert [d.date for d in days] == [today, today + timedelta(days=1), today + timedelta(days=2)]


@pytest.mark.parametrize("num_days", [0, 15])
def test_week_view_bounds(db, clock, today, num_days: int) -> None:
    with pytest.raises(InvalidRangeException):
        ScheduleService(db, now_provider=clock).week_view(today, num_days=num_days)


def test_week_summary_counts_occupancy(db, clock, today, booked_day) -> None:
    summaries = ScheduleService(db, now_provider=clock).week_summary(today, num_days=2)

    assert summaries[0].reservation_count == 2
    assert summaries[0].occupied_slots == 4
    assert summaries[0].available_slots == 14
    assert summaries[0].total_slots == 18
    assert summaries[1].reservation_count == 0
    assert summaries[1].available_slots == 18
