from .hires import HireContractManager, effective_status
from .identity import AccountDirectory
from .ledger import Ledger
from .notifications import LogNotifier, NotificationKind, Notifier, notify_safely
from .payments import PaymentService
from .queries import QueryService
from .repository import LedgerRepository
from .reviews import ReviewGate
from .wallet import AccountLocks, WalletStore

__all__ = [
    "AccountDirectory",
    "AccountLocks",
    "HireContractManager",
    "Ledger",
    "LedgerRepository",
    "LogNotifier",
    "NotificationKind",
    "Notifier",
    "PaymentService",
    "QueryService",
    "ReviewGate",
    "WalletStore",
    "effective_status",
    "notify_safely",
]
