from __future__ import annotations

from typing import Union
from uuid import UUID

from sqlmodel import Session

from ..core.errors import AccountNotFoundError
from ..models import AccountModel
from .repository import LedgerRepository


class AccountDirectory:
    """Resolves an account by id or username."""

    def __init__(self, session: Session) -> None:
        self.repository = LedgerRepository(session)

    def resolve_account(self, ref: Union[UUID, str]) -> AccountModel:
        account = None
        account_id = ref if isinstance(ref, UUID) else _parse_uuid(ref)
        if account_id is not None:
            account = self.repository.get_account(account_id)
        if account is None and isinstance(ref, str):
            account = self.repository.get_account_by_username(ref)
        if account is None:
            raise AccountNotFoundError(f"Account {ref} not found")
        return account


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None
