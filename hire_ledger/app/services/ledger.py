from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from ..core.clock import Clock, SystemClock
from ..core.config import get_settings
from ..core.errors import InvalidTransitionError, NotFoundError
from ..models import (
    EntryDirection,
    LedgerEntryKind,
    LedgerEntryModel,
    LedgerEntryStatus,
)
from .repository import LedgerRepository
from .wallet import validate_amount


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[LedgerEntryStatus, frozenset[LedgerEntryStatus]] = {
    LedgerEntryStatus.PENDING: frozenset(
        {LedgerEntryStatus.COMPLETED, LedgerEntryStatus.FAILED}
    ),
    LedgerEntryStatus.COMPLETED: frozenset({LedgerEntryStatus.REFUNDED}),
    LedgerEntryStatus.FAILED: frozenset(),
    LedgerEntryStatus.REFUNDED: frozenset(),
}


class Ledger:
    """Append-only record of balance-affecting events.

    Entries are written inside the caller's transaction; there is no delete.
    Only ``status``, ``completed_at``, ``transaction_id`` and ``description``
    ever change after an entry is recorded.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.clock = clock or SystemClock()
        self.repository = repository or LedgerRepository(session)

    def record(
        self,
        *,
        owner_id: UUID,
        kind: LedgerEntryKind,
        amount: Decimal,
        direction: EntryDirection,
        status: LedgerEntryStatus,
        counterparty_id: Optional[UUID] = None,
        currency: Optional[str] = None,
        description: Optional[str] = None,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> LedgerEntryModel:
        if status not in (LedgerEntryStatus.PENDING, LedgerEntryStatus.COMPLETED):
            raise InvalidTransitionError(
                f"New ledger entries start as PENDING or COMPLETED, not {status.value}"
            )
        entry = LedgerEntryModel(
            owner_id=owner_id,
            counterparty_id=counterparty_id,
            amount=validate_amount(amount),
            direction=direction,
            currency=currency or get_settings().default_currency,
            kind=kind,
            status=status,
            completed_at=self.clock.now() if status == LedgerEntryStatus.COMPLETED else None,
            description=description,
            payment_method=payment_method,
            transaction_id=transaction_id,
        )
        return self.repository.add_entry(entry)

    def get(self, entry_id: UUID) -> LedgerEntryModel:
        entry = self.repository.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")
        return entry

    def transition(
        self,
        entry_id: UUID,
        new_status: LedgerEntryStatus,
        description: Optional[str] = None,
    ) -> LedgerEntryModel:
        entry = self.repository.lock_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry {entry_id} not found")

        if new_status not in ALLOWED_TRANSITIONS[entry.status]:
            raise InvalidTransitionError(
                f"Cannot move ledger entry from {entry.status.value} to {new_status.value}"
            )

        previous = entry.status
        entry.status = new_status
        if new_status == LedgerEntryStatus.COMPLETED:
            entry.completed_at = self.clock.now()
        if description is not None:
            entry.description = description
        self.session.add(entry)
        logger.info(
            "ledger.transition",
            extra={
                "entry_id": str(entry_id),
                "from_status": previous.value,
                "to_status": new_status.value,
            },
        )
        return entry
