from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db as core_db
from ..core.clock import FixedClock
from ..core.db import create_engine_for_url, get_session, init_db, set_engine
from ..core.dependencies import get_clock, get_notifier
from ..main import app
from ..services import (
    HireContractManager,
    NotificationKind,
    PaymentService,
    QueryService,
    ReviewGate,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[UUID, NotificationKind, dict[str, Any]]] = []

    def notify(self, account_id: UUID, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self.sent.append((account_id, kind, payload))


class FailingNotifier:
    def notify(self, account_id: UUID, kind: NotificationKind, payload: dict[str, Any]) -> None:
        raise RuntimeError("notification gateway down")


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def payments(session, clock, notifier) -> PaymentService:
    return PaymentService(session, clock=clock, notifier=notifier)


@pytest.fixture
def hires(session, clock, notifier) -> HireContractManager:
    return HireContractManager(session, clock=clock, notifier=notifier)


@pytest.fixture
def reviews(session, clock, notifier) -> ReviewGate:
    return ReviewGate(session, clock=clock, notifier=notifier)


@pytest.fixture
def queries(session, clock) -> QueryService:
    return QueryService(session, clock=clock)


def fund(payments: PaymentService, account_id: UUID, amount: Decimal) -> None:
    entry = payments.request_topup(account_id, Decimal(amount), "BANK_TRANSFER")
    payments.confirm_topup(entry.id, f"txn-{entry.id}")


@pytest.fixture
def hirer(payments):
    account = payments.open_account("hirer", "Hannah Hirer")
    fund(payments, account.id, Decimal("100000"))
    return payments.get_account(account.id)


@pytest.fixture
def player(payments):
    return payments.open_account("player", "Pat Player")


def window(start_in: timedelta, length: timedelta = timedelta(hours=1)) -> tuple[datetime, datetime]:
    start = NOW + start_in
    return start, start + length


@pytest.fixture
def client(engine, clock, notifier) -> TestClient:
    previous_engine = core_db.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    init_db()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(previous_engine)
