from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..core.clock import Clock, SystemClock
from ..core.errors import InvalidTransitionError
from ..models import (
    AccountResponse,
    EntryDirection,
    LedgerEntryKind,
    LedgerEntryResponse,
    LedgerEntryStatus,
)
from .base import BaseService
from .ledger import Ledger
from .notifications import NotificationKind, Notifier, notify_safely
from .repository import LedgerRepository
from .wallet import WalletStore, validate_amount


logger = logging.getLogger(__name__)


class PaymentService(BaseService):
    """Accounts, gateway top-ups and withdrawals."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        super().__init__(session, repository)
        self.clock = clock or SystemClock()
        self.notifier = notifier
        self.wallets = WalletStore(session, self.repository)
        self.ledger = Ledger(session, self.clock, self.repository)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def open_account(self, username: str, owner_name: str) -> AccountResponse:
        try:
            with self._transaction():
                account = self.repository.add_account(username, owner_name)
        except IntegrityError as exc:
            raise ValueError(f"Username {username} is already taken") from exc
        logger.info(
            "account.opened",
            extra={"account_id": str(account.id), "username": username},
        )
        return AccountResponse.model_validate(account)

    def get_account(self, account_id: UUID) -> AccountResponse:
        return AccountResponse.model_validate(self.wallets.get(account_id))

    # ------------------------------------------------------------------
    # Top-ups: PENDING until the gateway confirms or fails them
    # ------------------------------------------------------------------
    def request_topup(
        self,
        account_id: UUID,
        amount: Decimal,
        payment_method: str,
        idempotency_key: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> LedgerEntryResponse:
        amount = validate_amount(amount)
        request_signature = ("topup", str(account_id), str(amount), payment_method, currency)

        with self.wallets.locked(account_id), self._transaction():
            cached = self._check_idempotency("topup", idempotency_key, request_signature)
            if cached is not None:
                return LedgerEntryResponse.model_validate(cached)

            entry = self.ledger.record(
                owner_id=account_id,
                kind=LedgerEntryKind.TOPUP,
                amount=amount,
                direction=EntryDirection.CREDIT,
                status=LedgerEntryStatus.PENDING,
                currency=currency,
                payment_method=payment_method,
                description=f"Top-up via {payment_method}",
            )
            response = LedgerEntryResponse.model_validate(entry)
            self._record_idempotent("topup", idempotency_key, request_signature, response)

        logger.info(
            "wallet.topup.requested",
            extra={"account_id": str(account_id), "entry_id": str(response.id), "amount": str(amount)},
        )
        return response

    def confirm_topup(self, entry_id: UUID, transaction_id: str) -> LedgerEntryResponse:
        entry = self._get_topup(entry_id)
        with self.wallets.locked(entry.owner_id) as accounts, self._transaction():
            entry = self.ledger.transition(entry_id, LedgerEntryStatus.COMPLETED)
            entry.transaction_id = transaction_id
            self.wallets.credit(accounts[entry.owner_id], entry.amount)
            response = LedgerEntryResponse.model_validate(entry)

        logger.info(
            "wallet.topup.confirmed",
            extra={
                "entry_id": str(entry_id),
                "account_id": str(response.owner_id),
                "transaction_id": transaction_id,
            },
        )
        notify_safely(
            self.notifier,
            response.owner_id,
            NotificationKind.PAYMENT,
            {"entry_id": str(entry_id), "amount": str(response.amount), "status": response.status.value},
        )
        return response

    def fail_topup(self, entry_id: UUID, reason: Optional[str] = None) -> LedgerEntryResponse:
        entry = self._get_topup(entry_id)
        with self.wallets.locked(entry.owner_id), self._transaction():
            entry = self.ledger.transition(entry_id, LedgerEntryStatus.FAILED, description=reason)
            response = LedgerEntryResponse.model_validate(entry)

        logger.info("wallet.topup.failed", extra={"entry_id": str(entry_id)})
        return response

    def refund_topup(self, entry_id: UUID, reason: str) -> LedgerEntryResponse:
        entry = self._get_topup(entry_id)
        with self.wallets.locked(entry.owner_id) as accounts, self._transaction():
            entry = self.ledger.transition(entry_id, LedgerEntryStatus.REFUNDED, description=reason)
            self.wallets.debit(accounts[entry.owner_id], entry.amount)
            response = LedgerEntryResponse.model_validate(entry)

        logger.info(
            "wallet.topup.refunded",
            extra={"entry_id": str(entry_id), "account_id": str(response.owner_id)},
        )
        notify_safely(
            self.notifier,
            response.owner_id,
            NotificationKind.PAYMENT,
            {"entry_id": str(entry_id), "amount": str(response.amount), "status": response.status.value},
        )
        return response

    # ------------------------------------------------------------------
    # Withdrawals settle immediately
    # ------------------------------------------------------------------
    def withdraw(
        self,
        account_id: UUID,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> AccountResponse:
        amount = validate_amount(amount)
        request_signature = ("withdraw", str(account_id), str(amount), memo)

        with self.wallets.locked(account_id) as accounts, self._transaction():
            cached = self._check_idempotency("withdraw", idempotency_key, request_signature)
            if cached is not None:
                return AccountResponse.model_validate(cached)

            account = self.wallets.debit(accounts[account_id], amount)
            self.ledger.record(
                owner_id=account_id,
                kind=LedgerEntryKind.WITHDRAW,
                amount=amount,
                direction=EntryDirection.DEBIT,
                status=LedgerEntryStatus.COMPLETED,
                description=memo,
            )
            response = AccountResponse.model_validate(account)
            self._record_idempotent("withdraw", idempotency_key, request_signature, response)

        logger.info(
            "wallet.withdraw",
            extra={"account_id": str(account_id), "amount": str(amount), "balance": str(response.balance)},
        )
        return response

    def _get_topup(self, entry_id: UUID):
        entry = self.ledger.get(entry_id)
        if entry.kind != LedgerEntryKind.TOPUP:
            raise InvalidTransitionError(
                f"Ledger entry {entry_id} is a {entry.kind.value} entry, not a top-up"
            )
        return entry
