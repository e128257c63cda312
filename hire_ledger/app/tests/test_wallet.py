from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from ..core.db import check_worker_count
from ..core.errors import (
    AccountNotFoundError,
    DuplicateIdempotencyKeyError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
)
from ..models import EntryDirection, LedgerEntryKind, LedgerEntryStatus
from ..services import Ledger, WalletStore
from ..services.base import BaseService
from .conftest import fund


def test_debit_and_credit_adjust_balance(session, payments, hirer):
    wallets = WalletStore(session)
    with wallets.locked(hirer.id) as accounts:
        wallets.debit(accounts[hirer.id], Decimal("250.50"))
        wallets.credit(accounts[hirer.id], Decimal("50.50"))
        session.commit()

    assert payments.get_account(hirer.id).balance == Decimal("99800")


def test_debit_rejects_overdraft(session, hirer):
    wallets = WalletStore(session)
    with wallets.locked(hirer.id) as accounts:
        with pytest.raises(InsufficientFundsError):
            wallets.debit(accounts[hirer.id], Decimal("100000.01"))
        assert accounts[hirer.id].balance == Decimal("100000")


@pytest.mark.parametrize(
    "amount",
    [Decimal("0"), Decimal("-5"), Decimal("0.004"), Decimal("0.015"), Decimal("10000000000000000")],
)
def test_unstorable_amounts_are_rejected(session, hirer, amount):
    wallets = WalletStore(session)
    with wallets.locked(hirer.id) as accounts:
        with pytest.raises(InvalidAmountError):
            wallets.credit(accounts[hirer.id], amount)
        with pytest.raises(InvalidAmountError):
            wallets.debit(accounts[hirer.id], amount)


def test_transfer_restores_source_when_credit_fails(session, hirer, player, monkeypatch):
    wallets = WalletStore(session)

    def broken_credit(account, amount):
        raise RuntimeError("credit failed")

    with wallets.locked(hirer.id, player.id) as accounts:
        monkeypatch.setattr(wallets, "credit", broken_credit)
        with pytest.raises(RuntimeError):
            wallets.transfer(accounts[hirer.id], accounts[player.id], Decimal("10"))
        assert accounts[hirer.id].balance == Decimal("100000")
        assert accounts[player.id].balance == Decimal("0")


def test_transfer_to_same_account_is_rejected(session, hirer):
    wallets = WalletStore(session)
    with wallets.locked(hirer.id) as accounts:
        with pytest.raises(ValueError):
            wallets.transfer(accounts[hirer.id], accounts[hirer.id], Decimal("1"))


def test_locking_unknown_account_raises(session):
    wallets = WalletStore(session)
    with pytest.raises(AccountNotFoundError):
        with wallets.locked(uuid4()):
            pass


def test_ledger_allows_only_legal_transitions(session, clock, hirer):
    ledger = Ledger(session, clock)
    entry = ledger.record(
        owner_id=hirer.id,
        kind=LedgerEntryKind.TOPUP,
        amount=Decimal("10"),
        direction=EntryDirection.CREDIT,
        status=LedgerEntryStatus.PENDING,
    )
    session.commit()
    assert entry.completed_at is None

    with pytest.raises(InvalidTransitionError):
        ledger.transition(entry.id, LedgerEntryStatus.REFUNDED)

    completed = ledger.transition(entry.id, LedgerEntryStatus.COMPLETED)
    assert completed.completed_at is not None
    refunded = ledger.transition(entry.id, LedgerEntryStatus.REFUNDED, description="chargeback")
    assert refunded.description == "chargeback"

    for status in LedgerEntryStatus:
        with pytest.raises(InvalidTransitionError):
            ledger.transition(entry.id, status)


def test_ledger_rejects_terminal_initial_status(session, clock, hirer):
    ledger = Ledger(session, clock)
    with pytest.raises(InvalidTransitionError):
        ledger.record(
            owner_id=hirer.id,
            kind=LedgerEntryKind.TOPUP,
            amount=Decimal("10"),
            direction=EntryDirection.CREDIT,
            status=LedgerEntryStatus.REFUNDED,
        )


def test_ledger_transition_unknown_entry(session, clock):
    with pytest.raises(NotFoundError):
        Ledger(session, clock).transition(uuid4(), LedgerEntryStatus.COMPLETED)


def test_topup_stays_pending_until_confirmed(payments, player):
    entry = payments.request_topup(player.id, Decimal("500"), "MOMO")
    assert entry.status == LedgerEntryStatus.PENDING
    assert entry.currency == "VND"
    assert payments.get_account(player.id).balance == Decimal("0")

    confirmed = payments.confirm_topup(entry.id, "gw-123")
    assert confirmed.status == LedgerEntryStatus.COMPLETED
    assert confirmed.transaction_id == "gw-123"
    assert payments.get_account(player.id).balance == Decimal("500")

    with pytest.raises(InvalidTransitionError):
        payments.confirm_topup(entry.id, "gw-123")
    assert payments.get_account(player.id).balance == Decimal("500")


def test_failed_topup_never_credits(payments, player):
    entry = payments.request_topup(player.id, Decimal("500"), "MOMO")
    failed = payments.fail_topup(entry.id, "card declined")
    assert failed.status == LedgerEntryStatus.FAILED
    assert failed.description == "card declined"
    with pytest.raises(InvalidTransitionError):
        payments.confirm_topup(entry.id, "late")
    assert payments.get_account(player.id).balance == Decimal("0")


def test_refund_topup_debits_and_requires_funds(payments, player):
    entry = payments.request_topup(player.id, Decimal("300"), "MOMO")
    payments.confirm_topup(entry.id, "gw-1")

    refunded = payments.refund_topup(entry.id, "duplicate charge")
    assert refunded.status == LedgerEntryStatus.REFUNDED
    assert refunded.description == "duplicate charge"
    assert payments.get_account(player.id).balance == Decimal("0")

    spent = payments.request_topup(player.id, Decimal("300"), "MOMO")
    payments.confirm_topup(spent.id, "gw-2")
    payments.withdraw(player.id, Decimal("200"))
    with pytest.raises(InsufficientFundsError):
        payments.refund_topup(spent.id, "too late")
    assert payments.get_account(player.id).balance == Decimal("100")


def test_withdraw_records_entry_and_is_idempotent(payments, queries, player):
    fund(payments, player.id, Decimal("1000"))

    first = payments.withdraw(player.id, Decimal("400"), idempotency_key="w-1")
    second = payments.withdraw(player.id, Decimal("400"), idempotency_key="w-1")

    assert first == second
    assert payments.get_account(player.id).balance == Decimal("600")
    kinds = [entry.kind for entry in queries.payments_by_user(player.id)]
    assert kinds.count(LedgerEntryKind.WITHDRAW) == 1

    with pytest.raises(DuplicateIdempotencyKeyError):
        payments.withdraw(player.id, Decimal("1"), idempotency_key="w-1")


def test_open_account_rejects_duplicate_username(payments, player):
    with pytest.raises(ValueError):
        payments.open_account("player", "Someone Else")


def test_locked_store_surfaces_as_unavailable(session):
    service = BaseService(session)

    with pytest.raises(StoreUnavailableError):
        with service._transaction():
            raise OperationalError("UPDATE account", {}, Exception("database is locked"))


def test_whole_cent_amounts_are_accepted(payments, player):
    fund(payments, player.id, Decimal("10.10"))

    assert payments.withdraw(player.id, Decimal("0.010")).balance == Decimal("10.09")
    with pytest.raises(InvalidAmountError):
        payments.withdraw(player.id, Decimal("0.001"))
    with pytest.raises(InvalidAmountError):
        payments.request_topup(player.id, Decimal("1.005"), "MOMO")
    assert payments.get_account(player.id).balance == Decimal("10.09")


def test_sqlite_store_refuses_multiple_workers():
    check_worker_count("postgresql://ledger@db/ledger", 4)
    check_worker_count("sqlite:///hire_ledger.db", 1)
    with pytest.raises(RuntimeError):
        check_worker_count("sqlite:///hire_ledger.db", 2)
