# clubcourt/repositories/payment_repository.py
"""
Payment Repository

Cash payment records. Status moves are conditional UPDATEs so an admin
action only takes effect on a record that is still pending.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.payment import PaymentRecord, PaymentStatus, PlayType
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[PaymentRecord]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentRecord)
        self.logger = logging.getLogger(__name__)

    def count_pending_for_account(self, account_id: str) -> int:
        return self.count(account_id=account_id, status=PaymentStatus.PENDING.value)

    def get_for_account_booking(self, account_id: str, booking_id: str) -> Optional[PaymentRecord]:
        return self.find_one_by(account_id=account_id, booking_id=booking_id)

    def get_open_play(
        self, account_id: str, play_date: date, time_slot: str
    ) -> Optional[PaymentRecord]:
        return self.find_one_by(
            account_id=account_id,
            play_date=play_date,
            time_slot=time_slot,
            play_type=PlayType.OPEN_PLAY.value,
        )

    def list_for_booking(self, booking_id: str) -> List[PaymentRecord]:
        return self.find_by(booking_id=booking_id)

    def list_for_account(
        self,
        account_id: str,
        *,
        status: Optional[PaymentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PaymentRecord]:
        query = self._build_query().filter(PaymentRecord.account_id == account_id)
        if status is not None:
            query = query.filter(PaymentRecord.status == status.value)
        query = query.order_by(PaymentRecord.play_date.desc(), PaymentRecord.recorded_at.desc())
        return self._execute_query(query.offset(offset).limit(limit))

    def transition_from_pending(
        self,
        payment_id: str,
        *,
        status: PaymentStatus,
        resolved_by_id: Optional[str],
        when: datetime,
    ) -> bool:
        values = {"status": status.value, "resolved_by_id": resolved_by_id}
        if status == PaymentStatus.PAID:
            values["paid_at"] = when
        stmt = (
            update(PaymentRecord)
            .where(
                PaymentRecord.id == payment_id,
                PaymentRecord.status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded(payment_id, list(values))
        return result.rowcount == 1
