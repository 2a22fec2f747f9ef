# clubcourt/models/account.py
"""
Account model.

Accounts are created by the registration/approval workflow outside the
engine. The engine only mutates ``coin_balance`` (through the coin
ledger) and reads the membership class and flags.
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class MembershipClass(str, Enum):
    """Two-tier rate category. The product calls these non-homeowner and homeowner."""

    STANDARD = "standard"
    REDUCED_RATE = "reduced_rate"


class AccountRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("coin_balance >= 0", name="ck_accounts_coin_balance_non_negative"),
        CheckConstraint(
            "membership_class IN ('standard', 'reduced_rate')",
            name="ck_accounts_membership_class",
        ),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    display_name = Column(String(120), nullable=False)
    membership_class = Column(String(20), nullable=False, default=MembershipClass.STANDARD.value)
    role = Column(String(20), nullable=False, default=AccountRole.MEMBER.value)
    coin_balance = Column(Integer, nullable=False, default=0)

    is_approved = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    fees_paid = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    @property
    def is_exempt(self) -> bool:
        """Superadmins have unlimited coins and are never blocked by dues."""
        return self.role == AccountRole.SUPERADMIN.value

    @property
    def is_admin(self) -> bool:
        return self.role in (AccountRole.ADMIN.value, AccountRole.SUPERADMIN.value)

    def deactivate(self) -> None:
        self.is_active = False

    def __repr__(self) -> str:
        return f"<Account {self.id} class={self.membership_class} coins={self.coin_balance}>"
