from .accounts import AccountService
from .balances import BalanceMutator, BalanceTarget
from .cards import CardService
from .processor import ProcessingResult, TransactionEndpoints, TransactionProcessor
from .reporting import ReportingService
from .repository import LedgerRepository
from .transactions import TransactionService

__all__ = [
    "AccountService",
    "BalanceMutator",
    "BalanceTarget",
    "CardService",
    "LedgerRepository",
    "ProcessingResult",
    "ReportingService",
    "TransactionEndpoints",
    "TransactionProcessor",
    "TransactionService",
]
