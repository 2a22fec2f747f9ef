"""
Database models for the club court engine.

- Accounts (membership class, coin balance, flags)
- Bookings, their ordered roster and the per-hour slot claims
- Coin ledger entries
- Cash payment records
- Premium feature grants
"""

from .account import Account, AccountRole, MembershipClass
from .booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingParticipant,
    BookingPaymentStatus,
    BookingStatus,
)
from .booking_slot import BookingSlotClaim
from .feature_grant import FeatureGrant
from .ledger import CREDIT_KINDS, LedgerEntry, LedgerEntryKind, LedgerEntryStatus
from .payment import PaymentRecord, PaymentStatus, PlayType

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "Account",
    "AccountRole",
    "Booking",
    "BookingParticipant",
    "BookingPaymentStatus",
    "BookingSlotClaim",
    "BookingStatus",
    "CREDIT_KINDS",
    "FeatureGrant",
    "LedgerEntry",
    "LedgerEntryKind",
    "LedgerEntryStatus",
    "MembershipClass",
    "PaymentRecord",
    "PaymentStatus",
    "PlayType",
]
