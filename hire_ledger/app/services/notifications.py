from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol
from uuid import UUID


logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    SYSTEM = "SYSTEM"
    PAYMENT = "PAYMENT"
    SCHEDULE = "SCHEDULE"
    REVIEW = "REVIEW"


class Notifier(Protocol):
    def notify(self, account_id: UUID, kind: NotificationKind, payload: dict[str, Any]) -> None: ...


class LogNotifier:
    """Default notifier; delivery itself belongs to the messaging service."""

    def notify(self, account_id: UUID, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info(
            "notification.queued",
            extra={"account_id": str(account_id), "kind": kind.value, "payload": payload},
        )


def notify_safely(
    notifier: Optional[Notifier],
    account_id: UUID,
    kind: NotificationKind,
    payload: dict[str, Any],
) -> None:
    """Fire-and-forget delivery. Runs after commit, so failures never undo money movement."""
    if notifier is None:
        return
    try:
        notifier.notify(account_id, kind, payload)
    except Exception:
        logger.exception(
            "notification.failed",
            extra={"account_id": str(account_id), "kind": kind.value},
        )
