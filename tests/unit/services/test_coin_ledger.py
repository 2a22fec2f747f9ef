import pytest

from clubcourt.core.exceptions import (
    AmountMismatchException,
    InsufficientBalanceException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from clubcourt.events.booking_events import GrantApproved
from clubcourt.models.ledger import LedgerEntryKind, LedgerEntryStatus
from clubcourt.services.coin_ledger import CoinLedger


def test_debit_reduces_balance_and_records_spent_entry(make_account, coin_ledger: CoinLedger) -> None:
    account = make_account(coins=30)

    entry = coin_ledger.debit(account.id, 20, "Court reservation")

    assert coin_ledger.balance(account.id) == 10
    assert entry.kind == LedgerEntryKind.SPENT.value
    assert entry.amount == 20
    assert entry.status == LedgerEntryStatus.APPROVED.value


def test_debit_refuses_to_overdraw(make_account, coin_ledger: CoinLedger) -> None:
    account = make_account(coins=5)

    with pytest.raises(InsufficientBalanceException) as exc_info:
        coin_ledger.debit(account.id, 10, "Court reservation")

    assert exc_info.value.details == {"required": 10, "available": 5}
    assert coin_ledger.balance(account.id) == 5
    assert [e.kind for e in coin_ledger.history(account.id)] == [LedgerEntryKind.GRANTED.value]


def test_exempt_debit_keeps_balance_and_logs_zero_entry(make_account, coin_ledger: CoinLedger) -> None:
    account = make_account(coins=0)

    entry = coin_ledger.debit(account.id, 40, "Court reservation", exempt=True)

    assert entry.amount == 0
    assert coin_ledger.balance(account.id) == 0


def test_debit_unknown_account_is_not_found(coin_ledger: CoinLedger) -> None:
    with pytest.raises(NotFoundException):
        coin_ledger.debit("01HZZZZZZZZZZZZZZZZZZZZZZZ", 1, "Court reservation")


@pytest.mark.parametrize("amount", [-1, 1.5, True])
def test_amount_must_be_a_non_negative_integer(make_account, coin_ledger: CoinLedger, amount) -> None:
    account = make_account(coins=10)
    with pytest.raises(ValidationException) as exc_info:
        coin_ledger.credit(account.id, amount, "Bad amount")
    assert exc_info.value.code == "INVALID_AMOUNT"


def test_credit_rejects_spent_kind(make_account, coin_ledger: CoinLedger) -> None:
    account = make_account()
    with pytest.raises(ValidationException):
        coin_ledger.credit(account.id, 5, "Not a credit", kind=LedgerEntryKind.SPENT)


def test_welcome_coins_are_granted(make_account, coin_ledger: CoinLedger) -> None:
    account = make_account()

    entry = coin_ledger.issue_welcome_coins(account.id)

    assert entry.kind == LedgerEntryKind.GRANTED.value
    assert entry.amount == 100
    assert coin_ledger.balance(account.id) == 100


def test_grant_request_waits_for_approval(make_account, coin_ledger: CoinLedger, captured_events) -> None:
    member = make_account()
    admin = make_account("Admin")

    request = coin_ledger.request_grant(member.id, 50, "Tournament prize")
    assert request.status == LedgerEntryStatus.PENDING.value
    assert coin_ledger.balance(member.id) == 0
    assert [entry.id for entry in coin_ledger.pending_requests()] == [request.id]

    credit = coin_ledger.approve_grant(request.id, resolved_by=admin.id)

    assert credit.kind == LedgerEntryKind.GRANTED.value
    assert coin_ledger.balance(member.id) == 50
    assert coin_ledger.pending_requests() == []
    approved = [event for event in captured_events if isinstance(event, GrantApproved)]
    assert len(approved) == 1
    assert approved[0].amount == 50
    assert approved[0].approved_by == admin.id


def test_request_cannot_be_resolved_twice(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account()
    request = coin_ledger.request_grant(member.id, 20, "Refund for rain-out")
    coin_ledger.approve_grant(request.id)

    with pytest.raises(InvalidStatusTransitionException):
        coin_ledger.approve_grant(request.id)
    with pytest.raises(InvalidStatusTransitionException):
        coin_ledger.reject_grant(request.id)

    assert coin_ledger.balance(member.id) == 20


def test_rejected_request_leaves_balance_untouched(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account(coins=10)
    request = coin_ledger.request_grant(member.id, 500, "Please")

    rejected = coin_ledger.reject_grant(request.id)

    assert rejected.status == LedgerEntryStatus.REJECTED.value
    assert coin_ledger.balance(member.id) == 10
    assert coin_ledger.reconcile(member.id) == (10, 10)


def test_only_requests_can_be_approved(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account()
    entry = coin_ledger.grant(member.id, 5, "Direct grant")

    with pytest.raises(InvalidStatusTransitionException):
        coin_ledger.approve_grant(entry.id)


def test_request_grant_requires_positive_amount(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account()
    with pytest.raises(ValidationException):
        coin_ledger.request_grant(member.id, 0, "Nothing")


def test_purchase_request_keeps_buyer_details_until_approved(
    make_account, coin_ledger: CoinLedger
) -> None:
    member = make_account()

    request = coin_ledger.request_purchase(
        member.id, 150, "150.00", " Ana Cruz ", "09171234567", payment_reference="GC-7781"
    )

    assert request.kind == LedgerEntryKind.REQUESTED.value
    assert request.status == LedgerEntryStatus.PENDING.value
    assert request.amount == 150
    assert request.purchase_details == {
        "amount_paid": "150.00",
        "buyer_name": "Ana Cruz",
        "contact_number": "09171234567",
        "payment_reference": "GC-7781",
    }
    assert coin_ledger.balance(member.id) == 0

    coin_ledger.approve_grant(request.id)
    assert coin_ledger.balance(member.id) == 150


def test_purchase_request_reference_is_optional(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account()

    request = coin_ledger.request_purchase(member.id, 20, 20, "Ben", "0917", payment_reference="  ")

    assert request.purchase_details["payment_reference"] is None


def test_purchase_request_must_pay_one_peso_per_coin(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account()

    with pytest.raises(AmountMismatchException) as exc_info:
        coin_ledger.request_purchase(member.id, 100, "90", "Ana", "0917")

    assert exc_info.value.details == {"expected": "100", "got": "90"}
    assert coin_ledger.pending_requests() == []


@pytest.mark.parametrize(
    "kwargs,code",
    [
        ({"coins": 0}, "INVALID_AMOUNT"),
        ({"amount_paid": "lots"}, "INVALID_AMOUNT"),
        ({"buyer_name": "  "}, "MISSING_PURCHASE_DETAILS"),
        ({"contact_number": ""}, "MISSING_PURCHASE_DETAILS"),
    ],
)
def test_purchase_request_validation(make_account, coin_ledger: CoinLedger, kwargs, code) -> None:
    member = make_account()
    request = {"coins": 10, "amount_paid": 10, "buyer_name": "Ana", "contact_number": "0917"}
    request.update(kwargs)

    with pytest.raises(ValidationException) as exc_info:
        coin_ledger.request_purchase(member.id, **request)

    assert exc_info.value.code == code
    assert coin_ledger.pending_requests() == []


def test_stored_balance_matches_history_after_mixed_activity(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account(coins=100)
    coin_ledger.debit(member.id, 30, "Court reservation")
    coin_ledger.credit(member.id, 30, "Refund")
    coin_ledger.debit(member.id, 45, "Court reservation")
    request = coin_ledger.request_grant(member.id, 15, "Top up")
    coin_ledger.approve_grant(request.id)
    coin_ledger.request_grant(member.id, 99, "Still pending")

    stored, derived = coin_ledger.reconcile(member.id)

    assert stored == derived == 70


def test_history_filters_by_kind(make_account, coin_ledger: CoinLedger) -> None:
    member = make_account(coins=50)
    coin_ledger.debit(member.id, 10, "First")
    coin_ledger.debit(member.id, 10, "Second")

    spent = coin_ledger.history(member.id, kind=LedgerEntryKind.SPENT)

    assert len(spent) == 2
    assert {entry.reason for entry in spent} == {"First", "Second"}
    assert len(coin_ledger.history(member.id, limit=1)) == 1
