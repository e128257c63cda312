from .db import Account as AccountModel
from .db import EntryDirection, HireStatus, LedgerEntryKind, LedgerEntryStatus
from .db import HireContract as HireContractModel
from .db import IdempotencyRecord as IdempotencyRecordModel
from .db import LedgerEntry as LedgerEntryModel
from .db import Review as ReviewModel
from .schemas import (
    AccountCreate,
    AccountResponse,
    CancelHireRequest,
    ConfirmPaymentRequest,
    FailPaymentRequest,
    HireContractResponse,
    HireRequest,
    HireStatsResponse,
    LedgerEntryResponse,
    PlayerStatsResponse,
    RefundRequest,
    ReviewRequest,
    ReviewResponse,
    StatementResponse,
    StatsPeriod,
    TopUpRequest,
    WithdrawRequest,
)

__all__ = [
    "AccountCreate",
    "AccountResponse",
    "CancelHireRequest",
    "ConfirmPaymentRequest",
    "FailPaymentRequest",
    "HireContractResponse",
    "HireRequest",
    "HireStatsResponse",
    "LedgerEntryResponse",
    "PlayerStatsResponse",
    "RefundRequest",
    "ReviewRequest",
    "ReviewResponse",
    "StatementResponse",
    "StatsPeriod",
    "TopUpRequest",
    "WithdrawRequest",
    "AccountModel",
    "HireContractModel",
    "LedgerEntryModel",
    "IdempotencyRecordModel",
    "ReviewModel",
    "EntryDirection",
    "HireStatus",
    "LedgerEntryKind",
    "LedgerEntryStatus",
]
