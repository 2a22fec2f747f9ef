"""Payment allocation DTOs."""

from decimal import Decimal
from typing import Tuple

from ..models.account import MembershipClass
from ._strict_base import FrozenModel


class RosterMember(FrozenModel):
    account_id: str
    membership_class: MembershipClass


class MemberShare(FrozenModel):
    """What one participant owes for the session."""

    account_id: str
    membership_class: MembershipClass
    rate_per_hour: Decimal
    amount_owed: Decimal


class AllocationSummary(FrozenModel):
    duration_hours: Decimal
    count_standard: int
    count_reduced: int
    rate_per_hour_standard: Decimal
    rate_per_hour_reduced: Decimal
    raw_total_per_hour: Decimal
    total_per_hour: Decimal
    grand_total: Decimal

    @property
    def minimum_applied(self) -> bool:
        return self.total_per_hour > self.raw_total_per_hour


class PaymentAllocation(FrozenModel):
    members: Tuple[MemberShare, ...]
    summary: AllocationSummary

    def share_for(self, account_id: str) -> MemberShare:
        for member in self.members:
            if member.account_id == account_id:
                return member
        raise KeyError(account_id)
