from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .db import CardNetwork, CardStatus, CardType, TransactionStatus, TransactionType

Money = Decimal


# Accounts ---------------------------------------------------------------
class AccountCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100, description="Name of the account holder")
    account_number: Optional[str] = Field(
        default=None, min_length=4, max_length=34, description="Generated when omitted"
    )
    routing_number: Optional[str] = Field(default=None, max_length=34)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    balance: Money = Field(default=Decimal("0.00"), ge=0, max_digits=18, decimal_places=2)
    is_default: bool = False


class AccountResponse(BaseModel):
    id: UUID
    user_id: UUID
    full_name: str
    account_number: str
    routing_number: Optional[str] = None
    currency: str
    balance: Money = Field(..., ge=0)
    is_default: bool
    created_at: datetime


class BalanceHistoryEntry(BaseModel):
    id: UUID
    account_id: UUID
    transaction_id: Optional[UUID] = None
    balance: Money
    date: datetime


class BalanceHistoryResponse(BaseModel):
    account_id: UUID
    items: list[BalanceHistoryEntry]


# Cards ------------------------------------------------------------------
class CardCreate(BaseModel):
    card_holder_name: str = Field(..., min_length=2, max_length=100)
    card_number: str = Field(..., min_length=12, max_length=23)
    expiry_date: str = Field(..., description="MM/YY or YYYY-MM-DD")
    cvv: str = Field(..., min_length=3, max_length=4)
    card_type: CardType
    bank: str = Field(..., min_length=2, max_length=50)
    credit_limit: Optional[Money] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    balance: Money = Field(default=Decimal("0.00"), ge=0, max_digits=18, decimal_places=2)


class CardUpdate(BaseModel):
    card_holder_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    credit_limit: Optional[Money] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    is_default: Optional[bool] = None


class CardBlockRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class CardResponse(BaseModel):
    id: UUID
    card_holder_name: str
    card_number: str = Field(..., description="Masked, e.g. 4111********1111")
    expiry_date: date
    network: CardNetwork
    card_type: CardType
    bank: str
    balance: Money
    credit_limit: Optional[Money] = None
    status: CardStatus
    is_default: bool
    created_at: datetime
    updated_at: datetime


class CardSummary(BaseModel):
    card_number: str
    bank: str
    card_type: CardType


# Transactions -----------------------------------------------------------
class TransactionCreate(BaseModel):
    type: TransactionType
    amount: Money = Field(..., gt=0, max_digits=18, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, max_length=50)
    sender_account_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None
    reference: Optional[str] = Field(default=None, max_length=128)
    metadata: Optional[dict[str, Any]] = None


class TransactionResponse(BaseModel):
    id: UUID
    transaction_id: str
    user_id: UUID
    type: TransactionType
    amount: Money
    status: TransactionStatus
    description: str
    category: Optional[str] = None
    reference: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    sender_account_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None
    sender_account_number: Optional[str] = None
    receiver_account_number: Optional[str] = None
    card: Optional[CardSummary] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


class TransactionFilters(BaseModel):
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class TransactionPage(BaseModel):
    items: list[TransactionResponse]
    pagination: Pagination


class ReceiptResponse(BaseModel):
    transaction: TransactionResponse
    generated_at: datetime


class StatsOverview(BaseModel):
    total_transactions: int
    completed_transactions: int
    success_rate: Decimal
    total_amount: Money
    average_amount: Money


class TypeBreakdown(BaseModel):
    type: TransactionType
    count: int
    amount: Money


class CategoryBreakdown(BaseModel):
    category: str
    count: int
    amount: Money


class StatusBreakdown(BaseModel):
    status: TransactionStatus
    count: int


class TransactionStats(BaseModel):
    period: str
    since: datetime
    overview: StatsOverview
    by_type: list[TypeBreakdown]
    by_category: list[CategoryBreakdown]
    by_status: list[StatusBreakdown]
