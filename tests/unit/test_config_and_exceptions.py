from decimal import Decimal
from http import HTTPStatus

import pytest
from pydantic import ValidationError

from clubcourt.core.config import Settings
from clubcourt.core.exceptions import (
    AmountMismatchException,
    InsufficientBalanceException,
    NotFoundException,
    NotInRosterException,
    SlotConflictException,
    UnsettledPaymentsException,
)
from clubcourt.core.timezone_utils import club_datetime, to_club_time
from clubcourt.core.ulid_helper import generate_ulid, get_timestamp_from_ulid, is_valid_ulid


def test_defaults_match_club_rules() -> None:
    config = Settings()

    assert config.rate_standard == Decimal("50")
    assert config.rate_reduced == Decimal("25")
    assert config.minimum_total_per_hour == Decimal("100")
    assert config.booking_coin_cost_per_hour == 10
    assert config.welcome_coins == 100
    assert config.club_timezone == "Asia/Manila"


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("RATE_REDUCED", "30.50")
    monkeypatch.setenv("MAX_BOOKING_HOURS", "4")

    config = Settings()

    assert config.rate_reduced == Decimal("30.50")
    assert config.max_booking_hours == 4


@pytest.mark.parametrize("field", ["rate_standard", "rate_reduced", "minimum_total_per_hour"])
def test_non_positive_rates_are_rejected(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(**{field: "0"})


def test_malformed_rate_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(rate_reduced="twenty")


def test_exceptions_carry_code_status_and_details() -> None:
    conflict = SlotConflictException(details={"date": "2031-03-03", "start": "09:00", "end": "10:00"})
    assert conflict.status_code == HTTPStatus.CONFLICT
    assert conflict.to_dict() == {
        "message": "This time slot conflicts with an existing booking",
        "code": "SLOT_CONFLICT",
        "details": {"date": "2031-03-03", "start": "09:00", "end": "10:00"},
    }

    assert InsufficientBalanceException(10, 5).status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert UnsettledPaymentsException(2).details == {"count": 2}
    assert NotInRosterException("b", "a").status_code == HTTPStatus.FORBIDDEN
    assert NotFoundException(resource="Booking", resource_id="x").message == "Booking not found"
    assert AmountMismatchException(Decimal("200"), Decimal("75")).details == {
        "expected": "200",
        "got": "75",
    }


def test_ulids_are_valid_and_timestamped() -> None:
    value = generate_ulid()

    assert len(value) == 26
    assert is_valid_ulid(value)
    assert get_timestamp_from_ulid(value) is not None
    assert not is_valid_ulid("not-a-ulid")


def test_club_clock_helpers() -> None:
    from datetime import date, datetime, timezone

    eight = club_datetime(date(2031, 3, 3), 8)
    assert eight.utcoffset().total_seconds() == 8 * 3600
    assert to_club_time(datetime(2031, 3, 3, 0, 0, tzinfo=timezone.utc)).hour == 8
    assert to_club_time(datetime(2031, 3, 3, 0, 0)).hour == 8
