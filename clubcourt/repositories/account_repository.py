# clubcourt/repositories/account_repository.py
"""
Account Repository

Reads account snapshots and performs the single-statement balance
mutations the coin ledger relies on. A conditional UPDATE keeps the
read-modify-write inside the database, so concurrent spend and refund
on the same account cannot lose updates.
"""

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.account import Account
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AccountRepository(BaseRepository[Account]):
    def __init__(self, db: Session):
        super().__init__(db, Account)
        self.logger = logging.getLogger(__name__)

    def get_balance(self, account_id: str) -> Optional[int]:
        """Current stored balance read straight from the row, bypassing the identity map."""
        query = self.db.query(Account.coin_balance).filter(Account.id == account_id)
        return self._execute_scalar(query)

    def get_active_by_ids(self, account_ids: List[str]) -> List[Account]:
        try:
            return (
                self.db.query(Account)
                .filter(Account.id.in_(account_ids), Account.is_active.is_(True))
                .all()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load accounts %s: %s", account_ids, exc)
            raise RepositoryException("Failed to load accounts") from exc

    def decrement_balance_if_sufficient(self, account_id: str, amount: int) -> bool:
        """
        Subtract ``amount`` only when the balance covers it.

        Returns False when the account is missing or the balance is short.
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.coin_balance >= amount)
            .values(coin_balance=Account.coin_balance - amount)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded(account_id, ["coin_balance"])
        return result.rowcount == 1

    def increment_balance(self, account_id: str, amount: int) -> bool:
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(coin_balance=Account.coin_balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self._expire_loaded(account_id, ["coin_balance"])
        return result.rowcount == 1

