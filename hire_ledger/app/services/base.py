from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from ..core.errors import DuplicateIdempotencyKeyError, StoreUnavailableError
from .repository import LedgerRepository


logger = logging.getLogger(__name__)


class BaseService:
    """Session, unit-of-work and idempotency plumbing shared by the services."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit on success; roll back and re-raise on any failure."""
        try:
            yield
            self.session.commit()
        except OperationalError as exc:
            self.session.rollback()
            logger.warning("store.unavailable", extra={"error": str(exc)})
            raise StoreUnavailableError("Ledger store is temporarily unavailable") from exc
        except Exception:
            self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Idempotency helpers
    # ------------------------------------------------------------------
    def _json_default(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, Decimal):
            return str(value)
        return value

    def _serialize(self, payload: Any) -> str:
        if hasattr(payload, "model_dump"):
            data = payload.model_dump(mode="json")
        else:
            data = payload
        return json.dumps(data, default=self._json_default, sort_keys=True)

    def _encode_signature(self, signature: Tuple[Any, ...]) -> str:
        return json.dumps(signature, default=self._json_default, sort_keys=True)

    def _check_idempotency(
        self,
        route: str,
        idempotency_key: Optional[str],
        request_signature: Tuple[Any, ...],
    ) -> Optional[dict[str, Any]]:
        if idempotency_key is None:
            return None
        record = self.repository.fetch_idempotency(route, idempotency_key)
        if record is None:
            return None

        signature = self._encode_signature(request_signature)
        if record.request_signature != signature:
            raise DuplicateIdempotencyKeyError(
                "Idempotency key was previously used with different parameters"
            )

        logger.info(
            f"idempotent.{route}.hit",
            extra={"idempotency_key": idempotency_key},
        )
        return json.loads(record.response_payload)

    def _record_idempotent(
        self,
        route: str,
        idempotency_key: Optional[str],
        request_signature: Tuple[Any, ...],
        response_payload: Any,
    ) -> None:
        if idempotency_key is None:
            return
        self.repository.save_idempotency(
            route=route,
            key=idempotency_key,
            signature=self._encode_signature(request_signature),
            payload=self._serialize(response_payload),
        )
