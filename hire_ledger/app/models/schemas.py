from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ..core.clock import ensure_utc
from .db import EntryDirection, HireStatus, LedgerEntryKind, LedgerEntryStatus

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

class AccountCreate(BaseModel):
    username: str = Field(..., min_length=1, description="Unique login name of the account holder")
    owner_name: str = Field(..., min_length=1, description="Display name of the account holder")

class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    owner_name: str
    created_at: UtcDatetime
    balance: Decimal = Field(..., ge=0)

class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: UtcDatetime
    owner_id: UUID
    counterparty_id: Optional[UUID] = None
    amount: Decimal
    direction: EntryDirection
    currency: str
    kind: LedgerEntryKind
    status: LedgerEntryStatus
    completed_at: Optional[UtcDatetime] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None

class TopUpRequest(BaseModel):
    amount: Decimal
    payment_method: str = Field(..., min_length=1, description="Gateway used to fund the wallet")
    currency: Optional[str] = None

class ConfirmPaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, description="Gateway transaction reference")

class FailPaymentRequest(BaseModel):
    reason: Optional[str] = None

class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1)

class WithdrawRequest(BaseModel):
    amount: Decimal
    memo: Optional[str] = Field(default=None, description="Narrative to display on the statement")

class StatementResponse(BaseModel):
    items: list[LedgerEntryResponse]
    next_cursor: Optional[str] = None

class HireRequest(BaseModel):
    hirer_id: UUID
    player_id: UUID
    amount: Decimal
    start_time: UtcDatetime
    end_time: UtcDatetime

class CancelHireRequest(BaseModel):
    requester_id: UUID

class HireContractResponse(BaseModel):
    id: UUID
    created_at: UtcDatetime
    hirer_id: UUID
    player_id: UUID
    ledger_entry_id: UUID
    amount: Decimal
    start_time: UtcDatetime
    end_time: UtcDatetime
    hire_status: HireStatus
    canceled_at: Optional[UtcDatetime] = None

class ReviewRequest(BaseModel):
    reviewer_id: UUID
    rating: int
    comment: Optional[str] = None

class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contract_id: UUID
    player_id: UUID
    reviewer_id: UUID
    rating: int
    comment: Optional[str] = None
    created_at: UtcDatetime

class HireStatsResponse(BaseModel):
    period: str = Field(..., description="Bucket label, e.g. 2026-10 for a monthly bucket")
    total_hires: int
    completed_hires: int
    total_hours: float
    earnings: Decimal

class PlayerStatsResponse(BaseModel):
    player_id: UUID
    player_name: str
    average_rating: Optional[float] = None
    total_reviews: int
    total_hire_hours: float
    completed_hires: int
    canceled_hires: int
    total_hires: int
    completion_rate: float
    total_earnings: Decimal
    recent_reviews: list[ReviewResponse]
    hire_stats: list[HireStatsResponse]

StatsPeriod = Literal["day", "month", "year"]
