"""Domain errors raised by the wallet, ledger, hire and review services.

Every error carries the HTTP status the API layer answers with, so a single
handler can translate the whole taxonomy.
"""


class HireLedgerError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidAmountError(HireLedgerError):
    """Raised when an amount is zero or negative."""


class InvalidTimeRangeError(HireLedgerError):
    """Raised when a start time is not strictly before its end time."""


class TimeInPastError(HireLedgerError):
    """Raised when a hire would start before the current time."""


class InvalidRatingError(HireLedgerError):
    """Raised when a review rating falls outside 0..5."""


class ForbiddenError(HireLedgerError):
    status_code = 403


class NotFoundError(HireLedgerError):
    status_code = 404


class AccountNotFoundError(NotFoundError):
    """Raised when an account id or username is missing from the store."""


class ConflictError(HireLedgerError):
    status_code = 409


class PlayerUnavailableError(ConflictError):
    """Raised when the player already has an active hire overlapping the window."""


class InsufficientFundsError(ConflictError):
    """Raised when a debit would drop a balance below zero."""


class PlayerInsufficientFundsError(InsufficientFundsError):
    """Raised when a player can no longer cover the refund of a canceled hire."""


class NotActiveError(ConflictError):
    pass


class AlreadyStartedError(ConflictError):
    pass


class ContractNotEndedError(ConflictError):
    pass


class AlreadyReviewedError(ConflictError):
    pass


class InvalidTransitionError(ConflictError):
    """Raised when a ledger entry status change is not in the allowed graph."""


class DuplicateIdempotencyKeyError(ConflictError):
    """Raised when the same idempotency key is reused with different input."""


class StoreUnavailableError(HireLedgerError):
    """Transient store failure; safe to retry with the same idempotency key."""

    status_code = 503
