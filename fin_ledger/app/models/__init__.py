from .db import Account as AccountModel
from .db import AccountBalanceHistory as AccountBalanceHistoryModel
from .db import Card as CardModel
from .db import (
    CardNetwork,
    CardStatus,
    CardType,
    TransactionStatus,
    TransactionType,
)
from .db import IdempotencyRecord as IdempotencyRecordModel
from .db import Transaction as TransactionModel
from .schemas import (
    AccountCreate,
    AccountResponse,
    BalanceHistoryEntry,
    BalanceHistoryResponse,
    CardBlockRequest,
    CardCreate,
    CardResponse,
    CardSummary,
    CardUpdate,
    CategoryBreakdown,
    Pagination,
    ReceiptResponse,
    StatsOverview,
    StatusBreakdown,
    TransactionCreate,
    TransactionFilters,
    TransactionPage,
    TransactionResponse,
    TransactionStats,
    TypeBreakdown,
)

__all__ = [
    "AccountCreate",
    "AccountResponse",
    "BalanceHistoryEntry",
    "BalanceHistoryResponse",
    "CardBlockRequest",
    "CardCreate",
    "CardResponse",
    "CardSummary",
    "CardUpdate",
    "CategoryBreakdown",
    "Pagination",
    "ReceiptResponse",
    "StatsOverview",
    "StatusBreakdown",
    "TransactionCreate",
    "TransactionFilters",
    "TransactionPage",
    "TransactionResponse",
    "TransactionStats",
    "TypeBreakdown",
    "CardNetwork",
    "CardStatus",
    "CardType",
    "TransactionStatus",
    "TransactionType",
    "AccountModel",
    "AccountBalanceHistoryModel",
    "CardModel",
    "IdempotencyRecordModel",
    "TransactionModel",
]
