from __future__ import annotations

from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from sqlmodel import Session

from ..core.clock import Clock, SystemClock, ensure_utc
from ..core.config import get_settings
from ..core.errors import AccountNotFoundError, InvalidTimeRangeError
from ..models import (
    HireContractResponse,
    LedgerEntryResponse,
    LedgerEntryStatus,
    StatementResponse,
)
from .hires import contract_to_response
from .repository import LedgerRepository


class QueryService:
    """Read-only projections over the ledger and hire contracts."""

    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.clock = clock or SystemClock()
        self.repository = repository or LedgerRepository(session)

    def _ensure_account(self, account_id: UUID) -> None:
        if self.repository.get_account(account_id) is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

    # Payments -----------------------------------------------------------
    def payments_by_user(self, account_id: UUID) -> list[LedgerEntryResponse]:
        self._ensure_account(account_id)
        return [LedgerEntryResponse.model_validate(e) for e in self.repository.list_entries(account_id)]

    def payments_by_counterparty(self, account_id: UUID) -> list[LedgerEntryResponse]:
        self._ensure_account(account_id)
        entries = self.repository.list_entries_by_counterparty(account_id)
        return [LedgerEntryResponse.model_validate(e) for e in entries]

    def payments_by_status(
        self, status: Union[LedgerEntryStatus, str]
    ) -> list[LedgerEntryResponse]:
        try:
            status = LedgerEntryStatus(status)
        except ValueError as exc:
            raise ValueError("Invalid payment status") from exc
        entries = self.repository.list_entries_by_status(status)
        return [LedgerEntryResponse.model_validate(e) for e in entries]

    def payments_by_date_range(self, start: datetime, end: datetime) -> list[LedgerEntryResponse]:
        start, end = ensure_utc(start), ensure_utc(end)
        if start > end:
            raise InvalidTimeRangeError("Range start must not be after its end")
        entries = self.repository.list_entries_between(start, end)
        return [LedgerEntryResponse.model_validate(e) for e in entries]

    def statement(
        self,
        account_id: UUID,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> StatementResponse:
        if limit is not None and limit < 1:
            raise ValueError("Invalid limit")
        self._ensure_account(account_id)
        limit = limit or get_settings().statement_page_size

        entries = self.repository.list_entries(account_id)

        start_index = 0
        if cursor:
            try:
                cursor_ts = ensure_utc(datetime.fromisoformat(cursor))
            except ValueError as exc:
                raise ValueError("Invalid cursor") from exc
            for idx, entry in enumerate(entries):
                if ensure_utc(entry.created_at) == cursor_ts:
                    start_index = idx + 1
                    break

        slice_entries = entries[start_index : start_index + limit]
        next_cursor = None
        if start_index + limit < len(entries):
            next_cursor = ensure_utc(slice_entries[-1].created_at).isoformat()

        return StatementResponse(
            items=[LedgerEntryResponse.model_validate(e) for e in slice_entries],
            next_cursor=next_cursor,
        )

    # Hires --------------------------------------------------------------
    def hires_by_hirer(self, account_id: UUID) -> list[HireContractResponse]:
        self._ensure_account(account_id)
        now = self.clock.now()
        return [
            contract_to_response(c, now)
            for c in self.repository.list_contracts_by_hirer(account_id)
        ]

    def hires_by_player(self, account_id: UUID) -> list[HireContractResponse]:
        self._ensure_account(account_id)
        now = self.clock.now()
        return [
            contract_to_response(c, now)
            for c in self.repository.list_contracts_by_player(account_id)
        ]
