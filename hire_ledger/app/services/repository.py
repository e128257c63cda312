from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlmodel import Session, select

from ..models import (
    AccountModel,
    HireContractModel,
    HireStatus,
    IdempotencyRecordModel,
    LedgerEntryKind,
    LedgerEntryModel,
    LedgerEntryStatus,
    ReviewModel,
)


class LedgerRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Account operations -------------------------------------------------
    def add_account(self, username: str, owner_name: str) -> AccountModel:
        account = AccountModel(username=username, owner_name=owner_name)
        self.session.add(account)
        self.session.flush()
        self.session.refresh(account)
        return account

    def get_account(self, account_id: UUID) -> Optional[AccountModel]:
        return self.session.get(AccountModel, account_id)

    def get_account_by_username(self, username: str) -> Optional[AccountModel]:
        stmt = select(AccountModel).where(AccountModel.username == username)
        return self.session.exec(stmt).first()

    def lock_account(self, account_id: UUID) -> Optional[AccountModel]:
        """Reload an account row, taking a row lock where the database has one."""
        stmt = (
            select(AccountModel)
            .where(AccountModel.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    # Ledger entries -----------------------------------------------------
    def add_entry(self, entry: LedgerEntryModel) -> LedgerEntryModel:
        self.session.add(entry)
        self.session.flush()
        self.session.refresh(entry)
        return entry

    def get_entry(self, entry_id: UUID) -> Optional[LedgerEntryModel]:
        return self.session.get(LedgerEntryModel, entry_id)

    def lock_entry(self, entry_id: UUID) -> Optional[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    def list_entries(self, owner_id: UUID) -> list[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.owner_id == owner_id)
            .order_by(LedgerEntryModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    def list_entries_by_counterparty(self, counterparty_id: UUID) -> list[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.counterparty_id == counterparty_id)
            .order_by(LedgerEntryModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    def list_entries_by_status(self, status: LedgerEntryStatus) -> list[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.status == status)
            .order_by(LedgerEntryModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    def list_entries_between(self, start: datetime, end: datetime) -> list[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.created_at >= start)
            .where(LedgerEntryModel.created_at <= end)
            .order_by(LedgerEntryModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    def list_hire_earnings(self, player_id: UUID) -> list[LedgerEntryModel]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.counterparty_id == player_id)
            .where(LedgerEntryModel.kind == LedgerEntryKind.HIRE)
            .where(LedgerEntryModel.status == LedgerEntryStatus.COMPLETED)
        )
        return list(self.session.exec(stmt))

    # Hire contracts -----------------------------------------------------
    def add_contract(self, contract: HireContractModel) -> HireContractModel:
        self.session.add(contract)
        self.session.flush()
        self.session.refresh(contract)
        return contract

    def get_contract(self, contract_id: UUID) -> Optional[HireContractModel]:
        return self.session.get(HireContractModel, contract_id)

    def lock_contract(self, contract_id: UUID) -> Optional[HireContractModel]:
        stmt = (
            select(HireContractModel)
            .where(HireContractModel.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    def list_active_contracts_for_player(self, player_id: UUID) -> list[HireContractModel]:
        stmt = (
            select(HireContractModel)
            .where(HireContractModel.player_id == player_id)
            .where(HireContractModel.hire_status == HireStatus.ACTIVE)
            .execution_options(populate_existing=True)
        )
        return list(self.session.exec(stmt))

    def list_contracts_by_hirer(self, hirer_id: UUID) -> list[HireContractModel]:
        stmt = (
            select(HireContractModel)
            .where(HireContractModel.hirer_id == hirer_id)
            .order_by(HireContractModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    def list_contracts_by_player(self, player_id: UUID) -> list[HireContractModel]:
        stmt = (
            select(HireContractModel)
            .where(HireContractModel.player_id == player_id)
            .order_by(HireContractModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    # Reviews ------------------------------------------------------------
    def add_review(self, review: ReviewModel) -> ReviewModel:
        self.session.add(review)
        self.session.flush()
        self.session.refresh(review)
        return review

    def get_review_for_contract(self, contract_id: UUID) -> Optional[ReviewModel]:
        stmt = select(ReviewModel).where(ReviewModel.contract_id == contract_id)
        return self.session.exec(stmt).first()

    def list_reviews_for_player(self, player_id: UUID) -> list[ReviewModel]:
        stmt = (
            select(ReviewModel)
            .where(ReviewModel.player_id == player_id)
            .order_by(ReviewModel.created_at.desc())
        )
        return list(self.session.exec(stmt))

    # Idempotency store --------------------------------------------------
    def fetch_idempotency(
        self, route: str, key: str
    ) -> Optional[IdempotencyRecordModel]:
        stmt = (
            select(IdempotencyRecordModel)
            .where(IdempotencyRecordModel.route == route)
            .where(IdempotencyRecordModel.key == key)
        )
        return self.session.exec(stmt).first()

    def save_idempotency(
        self,
        *,
        route: str,
        key: str,
        signature: str,
        payload: str,
    ) -> None:
        record = IdempotencyRecordModel(
            route=route,
            key=key,
            request_signature=signature,
            response_payload=payload,
        )
        self.session.add(record)
