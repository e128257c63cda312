from __future__ import annotations
from datetime import datetime, UTC
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LedgerEntryKind(str, Enum):
    TOPUP = "TOPUP"
    HIRE = "HIRE"
    WITHDRAW = "WITHDRAW"
    REFUND = "REFUND"


class LedgerEntryStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class EntryDirection(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class HireStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class Account(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    username: str = Field(index=True, unique=True)
    owner_name: str
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=True))
    balance: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)

class LedgerEntry(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=_utcnow, index=True, sa_type=DateTime(timezone=True)
    )
    owner_id: UUID = Field(foreign_key="account.id", index=True)
    counterparty_id: Optional[UUID] = Field(default=None, foreign_key="account.id", index=True)
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    direction: EntryDirection
    currency: str
    kind: LedgerEntryKind = Field(index=True)
    status: LedgerEntryStatus = Field(index=True)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    description: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None

class HireContract(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=_utcnow, index=True, sa_type=DateTime(timezone=True)
    )
    hirer_id: UUID = Field(foreign_key="account.id", index=True)
    player_id: UUID = Field(foreign_key="account.id", index=True)
    ledger_entry_id: UUID = Field(foreign_key="ledgerentry.id")
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    start_time: datetime = Field(sa_type=DateTime(timezone=True))
    end_time: datetime = Field(sa_type=DateTime(timezone=True))
    hire_status: HireStatus = Field(default=HireStatus.ACTIVE, index=True)
    canceled_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

class Review(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    contract_id: UUID = Field(foreign_key="hirecontract.id", unique=True)
    player_id: UUID = Field(foreign_key="account.id", index=True)
    reviewer_id: UUID = Field(foreign_key="account.id")
    rating: int
    comment: Optional[str] = None
    created_at: datetime = Field(
        default_factory=_utcnow, index=True, sa_type=DateTime(timezone=True)
    )

class IdempotencyRecord(SQLModel, table=True):
    route: str = Field(primary_key=True)
    key: str = Field(primary_key=True)
    request_signature: str
    response_payload: str
