# clubcourt/models/ledger.py
"""
Coin ledger entries.

Entries are append-only. The only mutation allowed after insert is the
single pending -> approved|rejected resolution of a ``requested`` entry.
"""

from enum import Enum

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class LedgerEntryKind(str, Enum):
    EARNED = "earned"
    SPENT = "spent"
    REQUESTED = "requested"
    GRANTED = "granted"


class LedgerEntryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


CREDIT_KINDS = (LedgerEntryKind.EARNED.value, LedgerEntryKind.GRANTED.value)


class LedgerEntry(Base):
    __tablename__ = "coin_ledger_entries"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_coin_ledger_entries_amount_non_negative"),
        CheckConstraint(
            "kind IN ('earned', 'spent', 'requested', 'granted')",
            name="ck_coin_ledger_entries_kind",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_coin_ledger_entries_status",
        ),
        Index("ix_coin_ledger_entries_account_created", "account_id", "created_at"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False)
    kind = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=LedgerEntryStatus.APPROVED.value)
    reason = Column(String(255), nullable=False)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True, index=True)
    # Buyer, contact and payment reference of a cash coin purchase
    purchase_details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by_id = Column(String(26), ForeignKey("accounts.id"), nullable=True)

    account = relationship("Account", foreign_keys=[account_id])

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.kind} {self.amount} status={self.status} account={self.account_id}>"
