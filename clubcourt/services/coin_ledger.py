# clubcourt/services/coin_ledger.py
"""
Coin Ledger Service

Holds each account's coin balance and its append-only history. Every
balance change happens in the same transaction as the entry that
explains it, so the stored balance always equals the sum of approved
earned/granted entries minus approved spent entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AmountMismatchException,
    InsufficientBalanceException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..events.booking_events import GrantApproved, emit
from ..models.ledger import LedgerEntry, LedgerEntryKind, LedgerEntryStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.account_repository import AccountRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.ledger_repository import LedgerRepository
from .base import BaseService
from .payment_allocator import amount_matches, parse_amount

logger = logging.getLogger(__name__)


def _validate_amount(amount: int, *, allow_zero: bool = True) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationException(
            "Coin amounts must be whole numbers",
            code="INVALID_AMOUNT",
            details={"amount": repr(amount)},
        )
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationException(
            "Coin amount must be positive",
            code="INVALID_AMOUNT",
            details={"amount": amount},
        )


class CoinLedger(BaseService):
    """Service for coin balances and their history."""

    def __init__(
        self,
        db: Session,
        account_repository: Optional[AccountRepository] = None,
        ledger_repository: Optional[LedgerRepository] = None,
    ):
        super().__init__(db)
        self.account_repository = (
            account_repository or RepositoryFactory.create_account_repository(db)
        )
        self.ledger_repository = ledger_repository or RepositoryFactory.create_ledger_repository(db)

    @BaseService.measure_operation("coin_balance")
    def balance(self, account_id: str) -> int:
        value = self.run_query(
            "coin_balance", lambda: self.account_repository.get_balance(account_id)
        )
        if value is None:
            raise NotFoundException(resource="Account", resource_id=account_id)
        return int(value)

    @BaseService.measure_operation("coin_debit")
    def debit(
        self,
        account_id: str,
        amount: int,
        reason: str,
        booking_id: Optional[str] = None,
        *,
        exempt: bool = False,
        use_transaction: bool = True,
    ) -> LedgerEntry:
        """
        Spend coins.

        Exempt accounts keep their balance; a zero-amount entry is still
        written so their history stays continuous.
        """
        _validate_amount(amount)

        def _debit() -> LedgerEntry:
            charged = 0 if exempt else amount
            if not self.account_repository.decrement_balance_if_sufficient(account_id, charged):
                available = self.account_repository.get_balance(account_id)
                if available is None:
                    raise NotFoundException(resource="Account", resource_id=account_id)
                self.logger.info(
                    "Debit refused for insufficient balance",
                    extra={"account_id": account_id, "required": amount, "available": available},
                )
                raise InsufficientBalanceException(required=amount, available=int(available))

            entry = self.ledger_repository.append(
                account_id=account_id,
                kind=LedgerEntryKind.SPENT,
                amount=charged,
                reason=reason,
                booking_id=booking_id,
            )
            prometheus_metrics.record_ledger_entry(LedgerEntryKind.SPENT.value)
            return entry

        if use_transaction:
            return self.run_in_transaction("coin_debit", _debit)
        return _debit()

    @BaseService.measure_operation("coin_credit")
    def credit(
        self,
        account_id: str,
        amount: int,
        reason: str,
        booking_id: Optional[str] = None,
        *,
        kind: LedgerEntryKind = LedgerEntryKind.EARNED,
        use_transaction: bool = True,
    ) -> LedgerEntry:
        """Add coins: refunds are ``earned``, admin and welcome coins are ``granted``."""
        _validate_amount(amount)
        if kind not in (LedgerEntryKind.EARNED, LedgerEntryKind.GRANTED):
            raise ValidationException(
                "Credits must be earned or granted",
                code="INVALID_LEDGER_KIND",
                details={"kind": str(kind)},
            )

        def _credit() -> LedgerEntry:
            if not self.account_repository.increment_balance(account_id, amount):
                raise NotFoundException(resource="Account", resource_id=account_id)
            entry = self.ledger_repository.append(
                account_id=account_id,
                kind=kind,
                amount=amount,
                reason=reason,
                booking_id=booking_id,
            )
            prometheus_metrics.record_ledger_entry(kind.value)
            return entry

        if use_transaction:
            return self.run_in_transaction("coin_credit", _credit)
        return _credit()

    @BaseService.measure_operation("coin_issue_welcome")
    def issue_welcome_coins(self, account_id: str) -> LedgerEntry:
        return self.credit(
            account_id,
            settings.welcome_coins,
            "Welcome coins for new member",
            kind=LedgerEntryKind.GRANTED,
        )

    @BaseService.measure_operation("coin_grant")
    def grant(self, account_id: str, amount: int, reason: str) -> LedgerEntry:
        """Direct admin grant; takes effect immediately."""
        _validate_amount(amount, allow_zero=False)
        return self.credit(account_id, amount, reason, kind=LedgerEntryKind.GRANTED)

    @BaseService.measure_operation("coin_request_grant")
    def request_grant(self, account_id: str, amount: int, reason: str) -> LedgerEntry:
        """Ask for coins. The balance is untouched until an admin approves."""
        _validate_amount(amount, allow_zero=False)
        entry = self.run_in_transaction(
            "coin_request_grant", lambda: self._append_request(account_id, amount, reason)
        )
        self.log_operation("coin_request_grant", account_id=account_id, amount=amount)
        return entry

    @BaseService.measure_operation("coin_request_purchase")
    def request_purchase(
        self,
        account_id: str,
        coins: int,
        amount_paid: Union[Decimal, int, float, str],
        buyer_name: str,
        contact_number: str,
        payment_reference: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Ask for coins bought with cash.

        The amount paid must equal ``coins`` times the configured coin price.
        Buyer and payment details ride on the pending request so the admin
        can verify the transfer before approving it.

        Args:
            account_id: Account to credit on approval
            coins: Whole number of coins bought
            amount_paid: Cash the buyer says they sent
            buyer_name: Name on the payment
            contact_number: How the admin can reach the buyer
            payment_reference: Transfer reference, when the buyer has one

        Returns:
            The pending ``requested`` entry
        """
        _validate_amount(coins, allow_zero=False)
        buyer = (buyer_name or "").strip()
        contact = (contact_number or "").strip()
        if not buyer or not contact:
            raise ValidationException(
                "Buyer name and contact number are required",
                code="MISSING_PURCHASE_DETAILS",
            )
        paid = parse_amount(amount_paid)
        expected = settings.coin_price * coins
        if not amount_matches(expected, paid):
            raise AmountMismatchException(expected=expected, got=paid)

        reference = (payment_reference or "").strip() or None
        details: Dict[str, Any] = {
            "amount_paid": str(paid),
            "buyer_name": buyer,
            "contact_number": contact,
            "payment_reference": reference,
        }
        entry = self.run_in_transaction(
            "coin_request_purchase",
            lambda: self._append_request(
                account_id, coins, f"Coin purchase: {coins} coins for {paid}", details
            ),
        )
        self.log_operation(
            "coin_request_purchase", account_id=account_id, coins=coins, reference=reference
        )
        return entry

    def _append_request(
        self,
        account_id: str,
        amount: int,
        reason: str,
        purchase_details: Optional[Dict[str, Any]] = None,
    ) -> LedgerEntry:
        if self.account_repository.get_by_id(account_id) is None:
            raise NotFoundException(resource="Account", resource_id=account_id)
        entry = self.ledger_repository.append(
            account_id=account_id,
            kind=LedgerEntryKind.REQUESTED,
            amount=amount,
            reason=reason,
            status=LedgerEntryStatus.PENDING,
            purchase_details=purchase_details,
        )
        prometheus_metrics.record_ledger_entry(LedgerEntryKind.REQUESTED.value)
        return entry

        entry = self.run_in_transaction("coin_request_grant", _request)
        self.log_operation("coin_request_grant", account_id=account_id, amount=amount)
        return entry

    @BaseService.measure_operation("coin_approve_grant")
    def approve_grant(self, entry_id: str, resolved_by: Optional[str] = None) -> LedgerEntry:
        """
        Approve a pending coin request and credit the account.

        Returns the ``granted`` entry that carries the balance change.
        """

        def _approve() -> LedgerEntry:
            request = self._resolve(entry_id, LedgerEntryStatus.APPROVED, resolved_by)
            return self.credit(
                request.account_id,
                request.amount,
                f"Coin request approved: {request.reason}",
                kind=LedgerEntryKind.GRANTED,
                use_transaction=False,
            )

        credit_entry = self.run_in_transaction("coin_approve_grant", _approve)
        emit(
            GrantApproved(
                entry_id=entry_id,
                account_id=credit_entry.account_id,
                amount=credit_entry.amount,
                approved_by=resolved_by,
            )
        )
        return credit_entry

    @BaseService.measure_operation("coin_reject_grant")
    def reject_grant(self, entry_id: str, resolved_by: Optional[str] = None) -> LedgerEntry:
        request = self.run_in_transaction(
            "coin_reject_grant",
            lambda: self._resolve(entry_id, LedgerEntryStatus.REJECTED, resolved_by),
        )
        self.log_operation("coin_reject_grant", entry_id=entry_id, resolved_by=resolved_by)
        return request

    def _resolve(
        self, entry_id: str, status: LedgerEntryStatus, resolved_by: Optional[str]
    ) -> LedgerEntry:
        entry = self.ledger_repository.get_by_id(entry_id)
        if entry is None:
            raise NotFoundException(resource="Ledger entry", resource_id=entry_id)
        if entry.kind != LedgerEntryKind.REQUESTED.value:
            raise InvalidStatusTransitionException("ledger entry", entry.kind, status.value)
        if entry.status != LedgerEntryStatus.PENDING.value:
            raise InvalidStatusTransitionException("coin request", entry.status, status.value)

        resolved = self.ledger_repository.resolve_request(
            entry_id,
            status=status,
            resolved_by_id=resolved_by,
            resolved_at=datetime.now(timezone.utc),
        )
        if not resolved:
            # Another admin resolved it between our read and write.
            raise InvalidStatusTransitionException("coin request", "resolved", status.value)
        return entry

    @BaseService.measure_operation("coin_history")
    def history(
        self,
        account_id: str,
        *,
        kind: Optional[LedgerEntryKind] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[LedgerEntry]:
        return self.run_query(
            "coin_history",
            lambda: self.ledger_repository.list_for_account(
                account_id, kind=kind, limit=limit, offset=offset
            ),
        )

    def pending_requests(self, limit: int = 100) -> List[LedgerEntry]:
        return self.run_query(
            "coin_pending_requests", lambda: self.ledger_repository.list_pending_requests(limit)
        )

    @BaseService.measure_operation("coin_reconcile")
    def reconcile(self, account_id: str) -> Tuple[int, int]:
        """Return (stored balance, balance derived from approved entries)."""
        stored = self.balance(account_id)
        derived = self.run_query(
            "coin_reconcile", lambda: self.ledger_repository.derived_balance(account_id)
        )
        if stored != derived:
            self.logger.error(
                "Coin balance drift detected",
                extra={"account_id": account_id, "stored": stored, "derived": derived},
            )
        return stored, derived
