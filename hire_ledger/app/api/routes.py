from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status

from ..core.dependencies import (
    get_account_directory,
    get_hire_manager,
    get_payment_service,
    get_query_service,
    get_review_gate,
)
from ..models import (
    AccountCreate,
    AccountResponse,
    CancelHireRequest,
    ConfirmPaymentRequest,
    FailPaymentRequest,
    HireContractResponse,
    HireRequest,
    LedgerEntryResponse,
    LedgerEntryStatus,
    PlayerStatsResponse,
    RefundRequest,
    ReviewRequest,
    ReviewResponse,
    StatementResponse,
    StatsPeriod,
    TopUpRequest,
    WithdrawRequest,
)
from ..services import (
    AccountDirectory,
    HireContractManager,
    PaymentService,
    QueryService,
    ReviewGate,
)


router = APIRouter(prefix="/accounts", tags=["accounts"])

@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    service: PaymentService = Depends(get_payment_service),
) -> AccountResponse:
    return service.open_account(payload.username, payload.owner_name)

@router.get("/{account_ref}", response_model=AccountResponse)
def get_account(
    account_ref: str,
    directory: AccountDirectory = Depends(get_account_directory),
) -> AccountResponse:
    return AccountResponse.model_validate(directory.resolve_account(account_ref))

@router.post(
    "/{account_id}/topups",
    response_model=LedgerEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_topup(
    account_id: UUID,
    payload: TopUpRequest,
    service: PaymentService = Depends(get_payment_service),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> LedgerEntryResponse:
    return service.request_topup(
        account_id,
        payload.amount,
        payload.payment_method,
        idempotency_key,
        currency=payload.currency,
    )

@router.post("/{account_id}/withdraw", response_model=AccountResponse)
def withdraw(
    account_id: UUID,
    payload: WithdrawRequest,
    service: PaymentService = Depends(get_payment_service),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> AccountResponse:
    return service.withdraw(account_id, payload.amount, idempotency_key, memo=payload.memo)

@router.get("/{account_id}/statement", response_model=StatementResponse)
def get_statement(
    account_id: UUID,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    cursor: str | None = None,
    queries: QueryService = Depends(get_query_service),
) -> StatementResponse:
    return queries.statement(account_id, limit=limit, cursor=cursor)

@router.get("/{account_id}/payments", response_model=list[LedgerEntryResponse])
def get_account_payments(
    account_id: UUID,
    queries: QueryService = Depends(get_query_service),
) -> list[LedgerEntryResponse]:
    return queries.payments_by_user(account_id)

@router.get("/{account_id}/hires", response_model=list[HireContractResponse])
def get_account_hires(
    account_id: UUID,
    queries: QueryService = Depends(get_query_service),
) -> list[HireContractResponse]:
    return queries.hires_by_hirer(account_id)

payment_router = APIRouter(prefix="/payments", tags=["payments"])

@payment_router.get("", response_model=list[LedgerEntryResponse])
def get_payments_by_status(
    payment_status: LedgerEntryStatus = Query(..., alias="status"),
    queries: QueryService = Depends(get_query_service),
) -> list[LedgerEntryResponse]:
    return queries.payments_by_status(payment_status)

@payment_router.get("/date-range", response_model=list[LedgerEntryResponse])
def get_payments_by_date_range(
    start: datetime,
    end: datetime,
    queries: QueryService = Depends(get_query_service),
) -> list[LedgerEntryResponse]:
    return queries.payments_by_date_range(start, end)

@payment_router.post("/{entry_id}/confirm", response_model=LedgerEntryResponse)
def confirm_payment(
    entry_id: UUID,
    payload: ConfirmPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> LedgerEntryResponse:
    return service.confirm_topup(entry_id, payload.transaction_id)

@payment_router.post("/{entry_id}/fail", response_model=LedgerEntryResponse)
def fail_payment(
    entry_id: UUID,
    payload: FailPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> LedgerEntryResponse:
    return service.fail_topup(entry_id, payload.reason)

@payment_router.post("/{entry_id}/refund", response_model=LedgerEntryResponse)
def refund_payment(
    entry_id: UUID,
    payload: RefundRequest,
    service: PaymentService = Depends(get_payment_service),
) -> LedgerEntryResponse:
    return service.refund_topup(entry_id, payload.reason)

hire_router = APIRouter(prefix="/hires", tags=["hires"])

@hire_router.post("", response_model=HireContractResponse, status_code=status.HTTP_201_CREATED)
def book_hire(
    payload: HireRequest,
    manager: HireContractManager = Depends(get_hire_manager),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> HireContractResponse:
    return manager.book_hire(
        payload.hirer_id,
        payload.player_id,
        payload.amount,
        payload.start_time,
        payload.end_time,
        idempotency_key,
    )

@hire_router.get("/{contract_id}", response_model=HireContractResponse)
def get_hire(
    contract_id: UUID,
    manager: HireContractManager = Depends(get_hire_manager),
) -> HireContractResponse:
    return manager.get_contract(contract_id)

@hire_router.post("/{contract_id}/cancel", response_model=HireContractResponse)
def cancel_hire(
    contract_id: UUID,
    payload: CancelHireRequest,
    manager: HireContractManager = Depends(get_hire_manager),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> HireContractResponse:
    return manager.cancel_hire(contract_id, payload.requester_id, idempotency_key)

@hire_router.post(
    "/{contract_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_review(
    contract_id: UUID,
    payload: ReviewRequest,
    gate: ReviewGate = Depends(get_review_gate),
) -> ReviewResponse:
    return gate.submit_review(contract_id, payload.reviewer_id, payload.rating, payload.comment)

player_router = APIRouter(prefix="/players", tags=["players"])

@player_router.get("/{player_id}/hires", response_model=list[HireContractResponse])
def get_player_hires(
    player_id: UUID,
    queries: QueryService = Depends(get_query_service),
) -> list[HireContractResponse]:
    return queries.hires_by_player(player_id)

@player_router.get("/{player_id}/payments", response_model=list[LedgerEntryResponse])
def get_player_payments(
    player_id: UUID,
    queries: QueryService = Depends(get_query_service),
) -> list[LedgerEntryResponse]:
    return queries.payments_by_counterparty(player_id)

@player_router.get("/{player_id}/stats", response_model=PlayerStatsResponse)
def get_player_stats(
    player_id: UUID,
    period: StatsPeriod = "month",
    gate: ReviewGate = Depends(get_review_gate),
) -> PlayerStatsResponse:
    return gate.get_player_stats(player_id, period)

__all__ = ["router", "payment_router", "hire_router", "player_router"]
