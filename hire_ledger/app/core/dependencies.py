from functools import lru_cache

from fastapi import Depends
from sqlmodel import Session

from ..services import (
    AccountDirectory,
    HireContractManager,
    LogNotifier,
    Notifier,
    PaymentService,
    QueryService,
    ReviewGate,
)
from .clock import Clock, SystemClock
from .db import get_session


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock()


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    return LogNotifier()


def get_account_directory(session: Session = Depends(get_session)) -> AccountDirectory:
    return AccountDirectory(session)


def get_payment_service(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(session, clock=clock, notifier=notifier)


def get_hire_manager(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> HireContractManager:
    return HireContractManager(session, clock=clock, notifier=notifier)


def get_review_gate(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> ReviewGate:
    return ReviewGate(session, clock=clock, notifier=notifier)


def get_query_service(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> QueryService:
    return QueryService(session, clock=clock)
