"""Acting-account snapshot supplied by the identity provider."""

from typing import TYPE_CHECKING

from pydantic import Field

from ..models.account import MembershipClass
from ._strict_base import FrozenModel

if TYPE_CHECKING:
    from ..models.account import Account


class AccountSnapshot(FrozenModel):
    """
    What the engine trusts about the acting account for one request.

    ``is_exempt`` accounts have unlimited coins and bypass the dues check;
    ``is_admin`` accounts may cancel bookings they do not own.
    """

    account_id: str = Field(..., min_length=1)
    membership_class: MembershipClass
    fees_paid: bool = False
    is_exempt: bool = False
    is_admin: bool = False

    @classmethod
    def from_account(cls, account: "Account") -> "AccountSnapshot":
        return cls(
            account_id=account.id,
            membership_class=MembershipClass(account.membership_class),
            fees_paid=bool(account.fees_paid),
            is_exempt=account.is_exempt,
            is_admin=account.is_admin,
        )
