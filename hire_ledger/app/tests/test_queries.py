from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from ..core.errors import AccountNotFoundError, InvalidTimeRangeError
from ..models import HireStatus, LedgerEntryKind, LedgerEntryStatus
from .conftest import window


def test_payments_by_user_newest_first(payments, queries, player):
    for amount in ("100", "200", "300"):
        payments.request_topup(player.id, Decimal(amount), "MOMO")

    entries = queries.payments_by_user(player.id)
    assert [entry.amount for entry in entries] == [Decimal("300"), Decimal("200"), Decimal("100")]


def test_payments_by_counterparty_lists_player_earnings(hires, queries, hirer, player):
    hires.book_hire(hirer.id, player.id, Decimal("100"), *window(timedelta(hours=1)))

    entries = queries.payments_by_counterparty(player.id)
    assert len(entries) == 1
    assert entries[0].kind == LedgerEntryKind.HIRE
    assert entries[0].owner_id == hirer.id


def test_payments_by_status(payments, queries, player):
    pending = payments.request_topup(player.id, Decimal("10"), "MOMO")
    failed = payments.request_topup(player.id, Decimal("20"), "MOMO")
    payments.fail_topup(failed.id)

    assert [e.id for e in queries.payments_by_status(LedgerEntryStatus.PENDING)] == [pending.id]
    assert [e.id for e in queries.payments_by_status("FAILED")] == [failed.id]

    with pytest.raises(ValueError, match="Invalid payment status"):
        queries.payments_by_status("LOST")


def test_payments_by_date_range(payments, queries, player):
    before = datetime.now(UTC) - timedelta(seconds=1)
    entry = payments.request_topup(player.id, Decimal("10"), "MOMO")
    after = datetime.now(UTC) + timedelta(seconds=1)

    assert entry.id in [e.id for e in queries.payments_by_date_range(before, after)]
    assert queries.payments_by_date_range(after, after + timedelta(hours=1)) == []
    with pytest.raises(InvalidTimeRangeError):
        queries.payments_by_date_range(after, before)


def test_statement_pagination(payments, queries, player):
    for amount in ("100", "200", "300"):
        payments.request_topup(player.id, Decimal(amount), "MOMO")

    first_page = queries.statement(player.id, limit=2)
    assert [entry.amount for entry in first_page.items] == [Decimal("300"), Decimal("200")]
    assert first_page.next_cursor is not None

    second_page = queries.statement(player.id, cursor=first_page.next_cursor)
    assert [entry.amount for entry in second_page.items] == [Decimal("100")]
    assert second_page.next_cursor is None


def test_statement_invalid_cursor(queries, player):
    with pytest.raises(ValueError, match="Invalid cursor"):
        queries.statement(player.id, cursor="not-a-valid-timestamp")


def test_hire_history_reflects_effective_status(hires, queries, clock, hirer, player):
    first_start, first_end = window(timedelta(hours=1))
    first = hires.book_hire(hirer.id, player.id, Decimal("10"), first_start, first_end)
    second = hires.book_hire(hirer.id, player.id, Decimal("10"), *window(timedelta(hours=5)))
    clock.set(first_end)

    as_hirer = queries.hires_by_hirer(hirer.id)
    as_player = queries.hires_by_player(player.id)

    assert [c.id for c in as_hirer] == [second.id, first.id]
    assert [c.id for c in as_player] == [second.id, first.id]
    assert [c.hire_status for c in as_player] == [HireStatus.ACTIVE, HireStatus.COMPLETED]
    assert queries.hires_by_player(hirer.id) == []


def test_queries_for_unknown_account(queries):
    with pytest.raises(AccountNotFoundError):
        queries.payments_by_user(uuid4())
    with pytest.raises(AccountNotFoundError):
        queries.hires_by_hirer(uuid4())


@pytest.mark.parametrize("limit", [0, -1])
def test_statement_rejects_non_positive_limit(payments, queries, player, limit):
    payments.request_topup(player.id, Decimal("10"), "MOMO")

    with pytest.raises(ValueError, match="Invalid limit"):
        queries.statement(player.id, limit=limit)
