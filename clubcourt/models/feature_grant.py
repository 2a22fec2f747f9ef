"""Persisted premium feature grants."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class FeatureGrant(Base):
    """Access to one premium feature for one account, bought with coins."""

    __tablename__ = "feature_grants"
    __table_args__ = (
        CheckConstraint(
            "uses_remaining IS NULL OR uses_remaining >= 0",
            name="ck_feature_grants_uses_non_negative",
        ),
        Index("ix_feature_grants_account_feature", "account_id", "feature"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False)
    feature = Column(String(50), nullable=False)
    purchased_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    uses_remaining = Column(Integer, nullable=True)
    ledger_entry_id = Column(String(26), ForeignKey("coin_ledger_entries.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<FeatureGrant {self.feature} account={self.account_id} expires={self.expires_at}>"
