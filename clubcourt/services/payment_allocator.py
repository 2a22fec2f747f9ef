"""
Turn a roster and a session length into what each player owes.

``allocate`` is a pure function of the roster's membership classes, the
duration and the rate policy. It is used to quote a booking before it is
made, to validate a reservation settlement, and to price a single-player
open-play session.

When the club minimum applies, each player's exact rate is a fraction.
Per-player rates are then rounded to cents by largest remainder, with
ties going to earlier roster positions, so the rates always add up to
the roster's hourly total and the amounts owed add up to the grand total.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from fractions import Fraction
import math
from typing import Any, List, Optional, Sequence, Union

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..schemas.allocation import AllocationSummary, MemberShare, PaymentAllocation, RosterMember
from .rate_resolver import CENTS, BlendedRates, RatePolicy, blend

Hours = Union[int, Decimal]


def _apportion(exact_rates: Sequence[Fraction], total: Decimal) -> List[Decimal]:
    """Round ``exact_rates`` to cents so that they sum to ``total`` exactly."""
    unit = Fraction(CENTS)
    whole_units = [math.floor(rate / unit) for rate in exact_rates]
    remainders = [rate / unit - units for rate, units in zip(exact_rates, whole_units)]

    missing_units = int((Fraction(total) - sum(whole_units) * unit) // unit)
    by_remainder = sorted(range(len(exact_rates)), key=lambda i: (-remainders[i], i))
    for index in by_remainder[:missing_units]:
        whole_units[index] += 1

    rates = [Decimal(units) * CENTS for units in whole_units]
    # a total with sub-cent digits leaves a residue smaller than a cent
    residue = total - sum(rates)
    if residue:
        rates[0] += residue
    return rates


def _member_rates(roster: Sequence[RosterMember], rates: BlendedRates) -> List[Decimal]:
    if not rates.minimum_applied:
        return [rates.rate_for(member.membership_class) for member in roster]
    return _apportion(
        [rates.exact_rate_for(member.membership_class) for member in roster],
        rates.total_per_hour,
    )


def allocate(
    roster: Sequence[RosterMember],
    duration_hours: Hours,
    policy: Optional[RatePolicy] = None,
) -> PaymentAllocation:
    policy = policy or RatePolicy.from_settings()
    duration = Decimal(duration_hours)
    if duration <= 0:
        raise ValidationException(
            "Duration must be positive",
            code="INVALID_DURATION",
            details={"duration_hours": str(duration_hours)},
        )

    rates = blend((member.membership_class for member in roster), policy)

    members = tuple(
        MemberShare(
            account_id=member.account_id,
            membership_class=member.membership_class,
            rate_per_hour=rate,
            amount_owed=rate * duration,
        )
        for member, rate in zip(roster, _member_rates(roster, rates))
    )
    summary = AllocationSummary(
        duration_hours=duration,
        count_standard=rates.count_standard,
        count_reduced=rates.count_reduced,
        rate_per_hour_standard=rates.rate_standard,
        rate_per_hour_reduced=rates.rate_reduced,
        raw_total_per_hour=rates.raw_total_per_hour,
        total_per_hour=rates.total_per_hour,
        grand_total=rates.total_per_hour * duration,
    )
    return PaymentAllocation(members=members, summary=summary)


def parse_amount(value: Any) -> Decimal:
    """Read a claimed cash amount; anything that is not a finite number is rejected."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationException(
            "Amount must be a number", code="INVALID_AMOUNT", details={"amount": str(value)}
        ) from exc
    if not amount.is_finite():
        raise ValidationException(
            "Amount must be a finite number", code="INVALID_AMOUNT", details={"amount": str(value)}
        )
    return amount


def amount_matches(expected: Decimal, got: Decimal, epsilon: Optional[Decimal] = None) -> bool:
    """Whether a claimed amount is within currency rounding of the expected one."""
    tolerance = settings.amount_epsilon if epsilon is None else epsilon
    return abs(Decimal(expected) - Decimal(got)) <= tolerance
