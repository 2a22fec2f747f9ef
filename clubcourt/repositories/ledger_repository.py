# clubcourt/repositories/ledger_repository.py
"""
Coin Ledger Repository

Append-only access to ledger entries plus the aggregate used to audit
an account balance against its history.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from ..models.ledger import (
    CREDIT_KINDS,
    LedgerEntry,
    LedgerEntryKind,
    LedgerEntryStatus,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Repository for coin ledger entries."""

    def __init__(self, db: Session):
        super().__init__(db, LedgerEntry)
        self.logger = logging.getLogger(__name__)

    def append(
        self,
        *,
        account_id: str,
        kind: LedgerEntryKind,
        amount: int,
        reason: str,
        status: LedgerEntryStatus = LedgerEntryStatus.APPROVED,
        booking_id: Optional[str] = None,
        purchase_details: Optional[Dict[str, Any]] = None,
    ) -> LedgerEntry:
        return self.create(
            account_id=account_id,
            kind=kind.value,
            amount=amount,
            reason=reason,
            status=status.value,
            booking_id=booking_id,
            purchase_details=purchase_details,
        )

    def resolve_request(
        self,
        entry_id: str,
        *,
        status: LedgerEntryStatus,
        resolved_by_id: Optional[str],
        resolved_at: datetime,
    ) -> bool:
        """
        Move a pending ``requested`` entry to ``status``.

        Returns False when the entry was already resolved (or is not a request).
        """
        stmt = (
            update(LedgerEntry)
            .where(
                LedgerEntry.id == entry_id,
                LedgerEntry.kind == LedgerEntryKind.REQUESTED.value,
                LedgerEntry.status == LedgerEntryStatus.PENDING.value,
            )
            .values(status=status.value, resolved_by_id=resolved_by_id, resolved_at=resolved_at)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded(entry_id, ["status", "resolved_by_id", "resolved_at"])
        return result.rowcount == 1

    def list_for_account(
        self,
        account_id: str,
        *,
        kind: Optional[LedgerEntryKind] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[LedgerEntry]:
        query = self.db.query(LedgerEntry).filter(LedgerEntry.account_id == account_id)
        if kind is not None:
            query = query.filter(LedgerEntry.kind == kind.value)
        query = query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        return self._execute_query(query.offset(offset).limit(limit))

    def list_pending_requests(self, limit: int = 100) -> List[LedgerEntry]:
        query = (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.kind == LedgerEntryKind.REQUESTED.value,
                LedgerEntry.status == LedgerEntryStatus.PENDING.value,
            )
            .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def derived_balance(self, account_id: str) -> int:
        """Sum of approved earned/granted entries minus approved spent entries."""
        signed_amount = case(
            (LedgerEntry.kind.in_(CREDIT_KINDS), LedgerEntry.amount),
            (LedgerEntry.kind == LedgerEntryKind.SPENT.value, -LedgerEntry.amount),
            else_=0,
        )
        query = self.db.query(func.coalesce(func.sum(signed_amount), 0)).filter(
            LedgerEntry.account_id == account_id,
            LedgerEntry.status == LedgerEntryStatus.APPROVED.value,
        )
        return int(self._execute_scalar(query))
