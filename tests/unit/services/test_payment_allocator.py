from decimal import Decimal

import pytest

from clubcourt.core.exceptions import ValidationException
from clubcourt.models.account import MembershipClass
from clubcourt.schemas.allocation import RosterMember
from clubcourt.services.payment_allocator import allocate, amount_matches, parse_amount
from clubcourt.services.rate_resolver import RatePolicy, blend, rate_for

STANDARD = MembershipClass.STANDARD
REDUCED = MembershipClass.REDUCED_RATE

DEFAULT_POLICY = RatePolicy(
    rate_standard=Decimal("50"),
    rate_reduced=Decimal("25"),
    minimum_total_per_hour=Decimal("100"),
)


def _roster(*classes: MembershipClass):
    return [RosterMember(account_id=f"acct-{i}", membership_class=c) for i, c in enumerate(classes)]


def test_rate_for_uses_class_rate() -> None:
    assert rate_for(STANDARD, DEFAULT_POLICY) == Decimal("50")
    assert rate_for(REDUCED, DEFAULT_POLICY) == Decimal("25")


def test_shortfall_is_split_per_head_across_both_classes() -> None:
    # rates deliberately inverted so the flat per-head top-up is visible
    policy = RatePolicy(
        rate_standard=Decimal("25"),
        rate_reduced=Decimal("50"),
        minimum_total_per_hour=Decimal("100"),
    )

    allocation = allocate(_roster(STANDARD, REDUCED), 2, policy)

    summary = allocation.summary
    assert summary.raw_total_per_hour == Decimal("75")
    assert summary.total_per_hour == Decimal("100")
    assert summary.rate_per_hour_standard == Decimal("37.5")
    assert summary.rate_per_hour_reduced == Decimal("62.5")
    assert summary.grand_total == Decimal("200")
    assert summary.minimum_applied is True
    assert [m.amount_owed for m in allocation.members] == [Decimal("75"), Decimal("125")]


def test_no_top_up_when_roster_meets_minimum() -> None:
    allocation = allocate(_roster(STANDARD, STANDARD, REDUCED), 1, DEFAULT_POLICY)

    summary = allocation.summary
    assert summary.raw_total_per_hour == Decimal("125")
    assert summary.total_per_hour == Decimal("125")
    assert summary.rate_per_hour_standard == Decimal("50")
    assert summary.rate_per_hour_reduced == Decimal("25")
    assert summary.minimum_applied is False


def test_member_shares_sum_to_grand_total() -> None:
    allocation = allocate(_roster(REDUCED, REDUCED, STANDARD, REDUCED), 3, DEFAULT_POLICY)

    owed = sum(member.amount_owed for member in allocation.members)
    assert owed == allocation.summary.grand_total
    assert allocation.summary.grand_total >= DEFAULT_POLICY.minimum_total_per_hour * 3


def test_single_player_pays_club_minimum() -> None:
    allocation = allocate(_roster(REDUCED), 2, DEFAULT_POLICY)

    assert allocation.members[0].rate_per_hour == Decimal("100")
    assert allocation.summary.grand_total == Decimal("200")


def test_allocation_is_deterministic_and_keeps_roster_order() -> None:
    roster = _roster(STANDARD, REDUCED, REDUCED)
    first = allocate(roster, 2, DEFAULT_POLICY)
    second = allocate(roster, 2, DEFAULT_POLICY)

    assert first == second
    assert [m.account_id for m in first.members] == ["acct-0", "acct-1", "acct-2"]


def test_share_for_unknown_account_raises_key_error() -> None:
    allocation = allocate(_roster(STANDARD), 1, DEFAULT_POLICY)
    with pytest.raises(KeyError):
        allocation.share_for("someone-else")


def test_empty_roster_is_rejected() -> None:
    with pytest.raises(ValidationException) as exc_info:
        blend([], DEFAULT_POLICY)
    assert exc_info.value.code == "EMPTY_ROSTER"


@pytest.mark.parametrize("duration", [0, -1])
def test_non_positive_duration_is_rejected(duration: int) -> None:
    with pytest.raises(ValidationException) as exc_info:
        allocate(_roster(STANDARD), duration, DEFAULT_POLICY)
    assert exc_info.value.code == "INVALID_DURATION"


def test_half_hour_durations_are_supported() -> None:
    allocation = allocate(_roster(STANDARD, STANDARD), Decimal("1.5"), DEFAULT_POLICY)
    assert allocation.summary.grand_total == Decimal("150")


def test_amount_matches_within_currency_epsilon() -> None:
    assert amount_matches(Decimal("200"), Decimal("200.00"))
    assert amount_matches(Decimal("200"), Decimal("199.99"))
    assert not amount_matches(Decimal("200"), Decimal("199.98"))
    assert amount_matches(Decimal("200"), Decimal("199"), epsilon=Decimal("1"))


def test_policy_from_settings_reads_configured_rates() -> None:
    from clubcourt.core.config import Settings

    config = Settings(rate_standard="60", rate_reduced="30", minimum_total_per_hour="120")
    policy = RatePolicy.from_settings(config)
    assert policy == RatePolicy(Decimal("60"), Decimal("30"), Decimal("120"))


def test_uneven_shortfall_still_sums_to_club_minimum() -> None:
    # 3 x 25 leaves 25 to share; 25 / 3 has no exact decimal form
    allocation = allocate(_roster(REDUCED, REDUCED, REDUCED), 1, DEFAULT_POLICY)

    rates = [member.rate_per_hour for member in allocation.members]
    assert rates == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert sum(rates) == allocation.summary.total_per_hour == Decimal("100")
    assert sum(m.amount_owed for m in allocation.members) == allocation.summary.grand_total
    assert allocation.summary.rate_per_hour_reduced == Decimal("33.33")


@pytest.mark.parametrize("duration", [1, Decimal("1.5"), 3])
def test_mixed_floor_roster_shares_add_up(duration) -> None:
    policy = RatePolicy(
        rate_standard=Decimal("50"),
        rate_reduced=Decimal("25"),
        minimum_total_per_hour=Decimal("150"),
    )

    allocation = allocate(_roster(STANDARD, REDUCED, REDUCED), duration, policy)

    rates = [member.rate_per_hour for member in allocation.members]
    assert rates == [Decimal("66.67"), Decimal("41.67"), Decimal("41.66")]
    assert sum(rates) == Decimal("150")
    owed = sum(member.amount_owed for member in allocation.members)
    assert owed == allocation.summary.grand_total == Decimal("150") * Decimal(duration)


def test_parse_amount_accepts_numbers_and_numeric_text() -> None:
    assert parse_amount("200") == Decimal("200")
    assert parse_amount(" 199.99 ") == Decimal("199.99")
    assert parse_amount(75) == Decimal("75")
    assert parse_amount(Decimal("12.5")) == Decimal("12.5")


@pytest.mark.parametrize("raw", ["abc", "", None, "NaN", float("nan"), float("inf")])
def test_parse_amount_rejects_non_numbers(raw) -> None:
    with pytest.raises(ValidationException) as exc_info:
        parse_amount(raw)
    assert exc_info.value.code == "INVALID_AMOUNT"
