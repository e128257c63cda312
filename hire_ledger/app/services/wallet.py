"""Per-account balance mutation.

Balances only change through ``WalletStore`` while the affected accounts are
held via ``WalletStore.locked``. Locks are process-wide mutexes taken in
ascending account-id order, so two transfers moving funds in opposite
directions cannot deadlock. Rows are also selected ``FOR UPDATE`` so that
databases with row locks serialize writers across processes.

SQLite ignores ``FOR UPDATE``. Against a SQLite file the in-process locks
are the only guard between the balance and overlap checks and the writes that
follow them, so a SQLite deployment must run a single worker process; ``init_db`` refuses
to start when ``HIRE_LEDGER_WORKERS`` is above one on SQLite. Run several
workers only against a database with row locks, such as PostgreSQL.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

from sqlmodel import Session

from ..core.errors import AccountNotFoundError, InsufficientFundsError, InvalidAmountError
from ..models import AccountModel
from .repository import LedgerRepository


class AccountLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.Lock] = {}

    def _lock_for(self, account_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, account_ids: tuple[UUID, ...]) -> Iterator[None]:
        ordered = [self._lock_for(account_id) for account_id in sorted(set(account_ids))]
        acquired: list[threading.Lock] = []
        try:
            for lock in ordered:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


account_locks = AccountLocks()


CENT = Decimal("0.01")
# Numeric(18, 2): sixteen integer digits and two decimal places.
MAX_AMOUNT = Decimal("9999999999999999.99")


def validate_amount(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError("Amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount must not exceed {MAX_AMOUNT}")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError("Amount must not have more than 2 decimal places")
    return amount


class WalletStore:
    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        locks: Optional[AccountLocks] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.locks = locks or account_locks

    def get(self, account_id: UUID) -> AccountModel:
        account = self.repository.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    @contextmanager
    def locked(self, *account_ids: UUID) -> Iterator[dict[UUID, AccountModel]]:
        """Hold the given accounts and yield their freshly loaded rows.

        The caller commits its transaction before leaving the block so that
        no other writer sees the balances between check and write.
        """
        with self.locks.hold(account_ids):
            accounts: dict[UUID, AccountModel] = {}
            for account_id in sorted(set(account_ids)):
                account = self.repository.lock_account(account_id)
                if account is None:
                    raise AccountNotFoundError(f"Account {account_id} not found")
                accounts[account_id] = account
            yield accounts

    def debit(self, account: AccountModel, amount: Decimal) -> AccountModel:
        amount = validate_amount(amount)
        if account.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds in account {account.id}"
            )
        account.balance -= amount
        self.session.add(account)
        return account

    def credit(self, account: AccountModel, amount: Decimal) -> AccountModel:
        amount = validate_amount(amount)
        account.balance += amount
        self.session.add(account)
        return account

    def transfer(
        self,
        source: AccountModel,
        dest: AccountModel,
        amount: Decimal,
    ) -> tuple[AccountModel, AccountModel]:
        if source.id == dest.id:
            raise ValueError("Cannot transfer to the same account")

        self.debit(source, amount)
        try:
            self.credit(dest, amount)
        except Exception:
            source.balance += Decimal(amount)
            raise
        return source, dest
