from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..core.clock import Clock, SystemClock, ensure_utc
from ..core.config import get_settings
from ..core.errors import (
    AccountNotFoundError,
    AlreadyReviewedError,
    ContractNotEndedError,
    ForbiddenError,
    InvalidRatingError,
    NotActiveError,
    NotFoundError,
)
from ..models import (
    HireContractModel,
    HireStatsResponse,
    HireStatus,
    PlayerStatsResponse,
    ReviewModel,
    ReviewResponse,
    StatsPeriod,
)
from .base import BaseService
from .hires import effective_status
from .notifications import NotificationKind, Notifier, notify_safely
from .repository import LedgerRepository


logger = logging.getLogger(__name__)

MIN_RATING = 0
MAX_RATING = 5

_PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


def _hours(contract: HireContractModel) -> float:
    delta = ensure_utc(contract.end_time) - ensure_utc(contract.start_time)
    return delta.total_seconds() / 3600


class ReviewGate(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        super().__init__(session, repository)
        self.clock = clock or SystemClock()
        self.notifier = notifier

    def submit_review(
        self,
        contract_id: UUID,
        reviewer_id: UUID,
        rating: int,
        comment: Optional[str] = None,
    ) -> ReviewResponse:
        """Attach the single review a hirer may leave once the hire has ended."""
        contract = self.repository.get_contract(contract_id)
        if contract is None:
            raise NotFoundError(f"Hire contract {contract_id} not found")
        if contract.hirer_id != reviewer_id:
            raise ForbiddenError("Only the hirer can review this hire")

        now = self.clock.now()
        if effective_status(contract, now) == HireStatus.CANCELED:
            raise NotActiveError(f"Hire contract {contract_id} was canceled")
        if now < ensure_utc(contract.end_time):
            raise ContractNotEndedError("Hire has not ended yet")
        if self.repository.get_review_for_contract(contract_id) is not None:
            raise AlreadyReviewedError(f"Hire contract {contract_id} was already reviewed")
        if (
            isinstance(rating, bool)
            or not isinstance(rating, int)
            or not MIN_RATING <= rating <= MAX_RATING
        ):
            raise InvalidRatingError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

        try:
            with self._transaction():
                review = self.repository.add_review(
                    ReviewModel(
                        contract_id=contract_id,
                        player_id=contract.player_id,
                        reviewer_id=reviewer_id,
                        rating=rating,
                        comment=comment,
                    )
                )
                if contract.hire_status == HireStatus.ACTIVE:
                    contract.hire_status = HireStatus.COMPLETED
                    contract.completed_at = contract.end_time
                    self.session.add(contract)
                response = ReviewResponse.model_validate(review)
        except IntegrityError as exc:
            raise AlreadyReviewedError(
                f"Hire contract {contract_id} was already reviewed"
            ) from exc

        logger.info(
            "review.submitted",
            extra={"contract_id": str(contract_id), "player_id": str(response.player_id), "rating": rating},
        )
        notify_safely(
            self.notifier,
            response.player_id,
            NotificationKind.REVIEW,
            {"contract_id": str(contract_id), "rating": rating},
        )
        return response

    def get_player_stats(self, player_id: UUID, period: StatsPeriod = "month") -> PlayerStatsResponse:
        player = self.repository.get_account(player_id)
        if player is None:
            raise AccountNotFoundError(f"Account {player_id} not found")
        if period not in _PERIOD_FORMATS:
            raise ValueError(f"Unknown stats period {period}")

        now = self.clock.now()
        contracts = self.repository.list_contracts_by_player(player_id)
        reviews = self.repository.list_reviews_for_player(player_id)
        earnings = self.repository.list_hire_earnings(player_id)

        completed = canceled = 0
        total_hours = 0.0
        buckets: dict[str, dict] = defaultdict(
            lambda: {"total": 0, "completed": 0, "hours": 0.0, "earnings": Decimal("0")}
        )
        for contract in contracts:
            status = effective_status(contract, now)
            bucket = buckets[ensure_utc(contract.start_time).strftime(_PERIOD_FORMATS[period])]
            bucket["total"] += 1
            if status == HireStatus.CANCELED:
                canceled += 1
                continue
            bucket["earnings"] += contract.amount
            if status == HireStatus.COMPLETED:
                completed += 1
                total_hours += _hours(contract)
                bucket["completed"] += 1
                bucket["hours"] += _hours(contract)

        finished = completed + canceled
        average = sum(r.rating for r in reviews) / len(reviews) if reviews else None
        recent = reviews[: get_settings().recent_reviews_limit]

        return PlayerStatsResponse(
            player_id=player.id,
            player_name=player.owner_name,
            average_rating=average,
            total_reviews=len(reviews),
            total_hire_hours=round(total_hours, 2),
            completed_hires=completed,
            canceled_hires=canceled,
            total_hires=len(contracts),
            completion_rate=completed / finished if finished else 0.0,
            total_earnings=sum((entry.amount for entry in earnings), Decimal("0")),
            recent_reviews=[ReviewResponse.model_validate(r) for r in recent],
            hire_stats=[
                HireStatsResponse(
                    period=label,
                    total_hires=values["total"],
                    completed_hires=values["completed"],
                    total_hours=round(values["hours"], 2),
                    earnings=values["earnings"],
                )
                for label, values in sorted(buckets.items())
            ],
        )
