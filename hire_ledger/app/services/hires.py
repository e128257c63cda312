from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from ..core.clock import Clock, SystemClock, ensure_utc
from ..core.errors import (
    AlreadyStartedError,
    ForbiddenError,
    InvalidTimeRangeError,
    NotActiveError,
    NotFoundError,
    PlayerInsufficientFundsError,
    PlayerUnavailableError,
    TimeInPastError,
)
from ..models import (
    EntryDirection,
    HireContractModel,
    HireContractResponse,
    HireStatus,
    LedgerEntryKind,
    LedgerEntryStatus,
)
from .base import BaseService
from .ledger import Ledger
from .notifications import NotificationKind, Notifier, notify_safely
from .repository import LedgerRepository
from .wallet import WalletStore, validate_amount


logger = logging.getLogger(__name__)


def effective_status(contract: HireContractModel, now: datetime) -> HireStatus:
    """Status of a contract as seen at ``now``.

    Completion is never required to be written: an ACTIVE contract whose end
    time has passed reads as COMPLETED. Two readers with the same ``now``
    always agree.
    """
    if contract.hire_status == HireStatus.CANCELED:
        return HireStatus.CANCELED
    if contract.hire_status == HireStatus.COMPLETED:
        return HireStatus.COMPLETED
    if ensure_utc(contract.end_time) <= ensure_utc(now):
        return HireStatus.COMPLETED
    return HireStatus.ACTIVE


def contract_to_response(contract: HireContractModel, now: datetime) -> HireContractResponse:
    return HireContractResponse(
        id=contract.id,
        created_at=contract.created_at,
        hirer_id=contract.hirer_id,
        player_id=contract.player_id,
        ledger_entry_id=contract.ledger_entry_id,
        amount=contract.amount,
        start_time=contract.start_time,
        end_time=contract.end_time,
        hire_status=effective_status(contract, now),
        canceled_at=contract.canceled_at,
    )


def overlaps(contract: HireContractModel, start: datetime, end: datetime) -> bool:
    return ensure_utc(contract.start_time) <= end and ensure_utc(contract.end_time) >= start


class HireContractManager(BaseService):
    """Books, cancels and completes time-boxed hires.

    Funds move from hirer to player at booking time; there is no hold step.
    Cancellation before the start time reverses the transfer.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        super().__init__(session, repository)
        self.clock = clock or SystemClock()
        self.notifier = notifier
        self.wallets = WalletStore(session, self.repository)
        self.ledger = Ledger(session, self.clock, self.repository)

    def _get_contract(self, contract_id: UUID) -> HireContractModel:
        contract = self.repository.get_contract(contract_id)
        if contract is None:
            raise NotFoundError(f"Hire contract {contract_id} not found")
        return contract

    def get_contract(self, contract_id: UUID) -> HireContractResponse:
        return contract_to_response(self._get_contract(contract_id), self.clock.now())

    def book_hire(
        self,
        hirer_id: UUID,
        player_id: UUID,
        amount: Decimal,
        start: datetime,
        end: datetime,
        idempotency_key: Optional[str] = None,
    ) -> HireContractResponse:
        amount = validate_amount(amount)
        if hirer_id == player_id:
            raise ValueError("A player cannot hire themselves")
        start, end = ensure_utc(start), ensure_utc(end)
        if start >= end:
            raise InvalidTimeRangeError("Hire start time must be before its end time")

        request_signature = (
            "book_hire",
            str(hirer_id),
            str(player_id),
            str(amount),
            start.isoformat(),
            end.isoformat(),
        )

        # The overlap and balance checks run under both account locks, so no
        # concurrent booking or transfer can slip in before the commit.
        with self.wallets.locked(hirer_id, player_id) as accounts, self._transaction():
            cached = self._check_idempotency("book_hire", idempotency_key, request_signature)
            if cached is not None:
                return self.get_contract(UUID(cached["id"]))

            now = self.clock.now()
            if start < now:
                raise TimeInPastError("Hire cannot start in the past")

            for existing in self.repository.list_active_contracts_for_player(player_id):
                if overlaps(existing, start, end):
                    raise PlayerUnavailableError(
                        f"Player {player_id} is already booked from "
                        f"{ensure_utc(existing.start_time).isoformat()} to "
                        f"{ensure_utc(existing.end_time).isoformat()}"
                    )

            hirer, player = accounts[hirer_id], accounts[player_id]
            self.wallets.transfer(hirer, player, amount)
            entry = self.ledger.record(
                owner_id=hirer_id,
                counterparty_id=player_id,
                kind=LedgerEntryKind.HIRE,
                amount=amount,
                direction=EntryDirection.DEBIT,
                status=LedgerEntryStatus.COMPLETED,
                description=f"Hire of {player.username} from {start.isoformat()} to {end.isoformat()}",
            )
            contract = self.repository.add_contract(
                HireContractModel(
                    hirer_id=hirer_id,
                    player_id=player_id,
                    ledger_entry_id=entry.id,
                    amount=amount,
                    start_time=start,
                    end_time=end,
                    hire_status=HireStatus.ACTIVE,
                )
            )
            response = contract_to_response(contract, now)
            self._record_idempotent("book_hire", idempotency_key, request_signature, response)

        logger.info(
            "hire.booked",
            extra={
                "contract_id": str(response.id),
                "hirer_id": str(hirer_id),
                "player_id": str(player_id),
                "amount": str(amount),
            },
        )
        payload = {
            "contract_id": str(response.id),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "amount": str(amount),
        }
        notify_safely(self.notifier, player_id, NotificationKind.SCHEDULE, payload)
        notify_safely(self.notifier, hirer_id, NotificationKind.PAYMENT, payload)
        return response

    def cancel_hire(
        self,
        contract_id: UUID,
        requester_id: UUID,
        idempotency_key: Optional[str] = None,
    ) -> HireContractResponse:
        contract = self._get_contract(contract_id)
        if contract.hirer_id != requester_id:
            raise ForbiddenError("Only the hirer can cancel this hire")

        hirer_id, player_id = contract.hirer_id, contract.player_id
        request_signature = ("cancel_hire", str(contract_id), str(requester_id))

        with self.wallets.locked(hirer_id, player_id) as accounts, self._transaction():
            cached = self._check_idempotency("cancel_hire", idempotency_key, request_signature)
            if cached is not None:
                return self.get_contract(contract_id)

            contract = self.repository.lock_contract(contract_id)
            if contract.hire_status != HireStatus.ACTIVE:
                raise NotActiveError(
                    f"Hire contract {contract_id} is {contract.hire_status.value}"
                )
            now = self.clock.now()
            if now >= ensure_utc(contract.start_time):
                raise AlreadyStartedError("Hire has already started and cannot be canceled")

            hirer, player = accounts[hirer_id], accounts[player_id]
            if player.balance < contract.amount:
                raise PlayerInsufficientFundsError(
                    f"Player {player_id} no longer holds enough funds to refund this hire"
                )
            self.wallets.transfer(player, hirer, contract.amount)
            self.ledger.transition(
                contract.ledger_entry_id,
                LedgerEntryStatus.REFUNDED,
                description="Hire canceled before start",
            )
            self.ledger.record(
                owner_id=hirer_id,
                counterparty_id=player_id,
                kind=LedgerEntryKind.REFUND,
                amount=contract.amount,
                direction=EntryDirection.CREDIT,
                status=LedgerEntryStatus.COMPLETED,
                description=f"Refund for canceled hire {contract_id}",
            )
            contract.hire_status = HireStatus.CANCELED
            contract.canceled_at = now
            self.session.add(contract)
            response = contract_to_response(contract, now)
            self._record_idempotent("cancel_hire", idempotency_key, request_signature, response)

        logger.info(
            "hire.canceled",
            extra={"contract_id": str(contract_id), "hirer_id": str(hirer_id), "player_id": str(player_id)},
        )
        payload = {"contract_id": str(contract_id), "amount": str(response.amount)}
        notify_safely(self.notifier, player_id, NotificationKind.SCHEDULE, payload)
        notify_safely(self.notifier, hirer_id, NotificationKind.PAYMENT, payload)
        return response

    def complete_if_elapsed(self, contract_id: UUID) -> HireStatus:
        """Return the effective status, persisting COMPLETED once the end time has passed."""
        contract = self._get_contract(contract_id)
        now = self.clock.now()
        status = effective_status(contract, now)
        if status != HireStatus.COMPLETED or contract.hire_status == HireStatus.COMPLETED:
            return status

        with self._transaction():
            contract = self.repository.lock_contract(contract_id)
            if contract.hire_status == HireStatus.ACTIVE:
                contract.hire_status = HireStatus.COMPLETED
                contract.completed_at = contract.end_time
                self.session.add(contract)
        logger.info("hire.completed", extra={"contract_id": str(contract_id)})
        return HireStatus.COMPLETED
