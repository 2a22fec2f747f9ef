"""
Per-hour court rates for a roster.

Each participant pays the hourly rate of their membership class. When
the roster's combined hourly total falls short of the club minimum, the
shortfall is split evenly per head and added to both class rates, so
every player's rate goes up by the same flat amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Iterable, Optional

from ..core.config import Settings, settings
from ..core.exceptions import ValidationException
from ..models.account import MembershipClass


@dataclass(frozen=True)
class RatePolicy:
    """The three configured constants the allocation depends on."""

    rate_standard: Decimal
    rate_reduced: Decimal
    minimum_total_per_hour: Decimal

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RatePolicy":
        config = config or settings
        return cls(
            rate_standard=Decimal(config.rate_standard),
            rate_reduced=Decimal(config.rate_reduced),
            minimum_total_per_hour=Decimal(config.minimum_total_per_hour),
        )


CENTS = Decimal("0.01")


def to_cents(value: Fraction) -> Decimal:
    """Round an exact rate to whole cents, halves up."""
    return (Decimal(value.numerator) / Decimal(value.denominator)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


@dataclass(frozen=True)
class BlendedRates:
    """
    Hourly rates for one roster.

    ``top_up`` is the exact per-head share of the shortfall. It stays a
    Fraction because a shortfall rarely divides evenly by the roster size;
    only the displayed class rates are rounded to cents.
    """

    base_standard: Decimal
    base_reduced: Decimal
    top_up: Fraction
    count_standard: int
    count_reduced: int
    raw_total_per_hour: Decimal
    total_per_hour: Decimal
    shortfall: Decimal

    @property
    def minimum_applied(self) -> bool:
        return self.top_up > 0

    def exact_rate_for(self, membership_class: MembershipClass) -> Fraction:
        if MembershipClass(membership_class) == MembershipClass.REDUCED_RATE:
            return Fraction(self.base_reduced) + self.top_up
        return Fraction(self.base_standard) + self.top_up

    def rate_for(self, membership_class: MembershipClass) -> Decimal:
        if not self.minimum_applied:
            if MembershipClass(membership_class) == MembershipClass.REDUCED_RATE:
                return self.base_reduced
            return self.base_standard
        return to_cents(self.exact_rate_for(membership_class))

    @property
    def rate_standard(self) -> Decimal:
        return self.rate_for(MembershipClass.STANDARD)

    @property
    def rate_reduced(self) -> Decimal:
        return self.rate_for(MembershipClass.REDUCED_RATE)


def rate_for(membership_class: MembershipClass, policy: RatePolicy) -> Decimal:
    """Undiscounted, unblended hourly rate for one membership class."""
    if MembershipClass(membership_class) == MembershipClass.REDUCED_RATE:
        return policy.rate_reduced
    return policy.rate_standard


def blend(roster_classes: Iterable[MembershipClass], policy: RatePolicy) -> BlendedRates:
    classes = [MembershipClass(value) for value in roster_classes]
    if not classes:
        raise ValidationException("Roster must contain at least one player", code="EMPTY_ROSTER")

    count_reduced = sum(1 for value in classes if value == MembershipClass.REDUCED_RATE)
    count_standard = len(classes) - count_reduced

    raw_total = count_standard * policy.rate_standard + count_reduced * policy.rate_reduced
    shortfall = Decimal("0")
    top_up = Fraction(0)

    if raw_total < policy.minimum_total_per_hour:
        shortfall = policy.minimum_total_per_hour - raw_total
        top_up = Fraction(shortfall) / len(classes)

    return BlendedRates(
        base_standard=policy.rate_standard,
        base_reduced=policy.rate_reduced,
        top_up=top_up,
        count_standard=count_standard,
        count_reduced=count_reduced,
        raw_total_per_hour=raw_total,
        total_per_hour=max(raw_total, policy.minimum_total_per_hour),
        shortfall=shortfall,
    )
