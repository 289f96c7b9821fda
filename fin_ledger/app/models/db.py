from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from ..core.errors import InvalidStatusTransitionError


def utcnow() -> datetime:
    return datetime.now(UTC)


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        # PENDING is the only status with outgoing edges.
        return self is TransactionStatus.PENDING and target is not TransactionStatus.PENDING


class CardType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    PREPAID = "PREPAID"


class CardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    DELETED = "DELETED"


class CardNetwork(str, Enum):
    VISA = "VISA"
    MASTERCARD = "MASTERCARD"
    AMEX = "AMEX"
    DISCOVER = "DISCOVER"
    MADA = "MADA"


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    user_id: UUID = Field(index=True)
    full_name: str
    account_number: str = Field(unique=True, index=True)
    routing_number: Optional[str] = None
    currency: str = Field(default="SAR", max_length=3)
    balance: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=18, decimal_places=2)
    is_default: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Card(SQLModel, table=True):
    __tablename__ = "cards"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_cards_balance_non_negative"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    user_id: UUID = Field(index=True)
    card_holder_name: str
    card_number: str = Field(unique=True, index=True)
    cvv: str
    expiry_date: date
    network: CardNetwork
    card_type: CardType
    bank: str
    balance: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=18, decimal_places=2)
    credit_limit: Optional[Decimal] = Field(default=None, max_digits=18, decimal_places=2)
    status: CardStatus = Field(default=CardStatus.ACTIVE)
    is_default: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    transaction_id: str = Field(default_factory=lambda: str(uuid4()), unique=True, index=True)
    user_id: UUID = Field(index=True)
    type: TransactionType = Field(index=True)
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    sender_account_id: Optional[UUID] = Field(default=None, foreign_key="accounts.id", index=True)
    receiver_account_id: Optional[UUID] = Field(default=None, foreign_key="accounts.id", index=True)
    card_id: Optional[UUID] = Field(default=None, foreign_key="cards.id", index=True)
    status: TransactionStatus = Field(default=TransactionStatus.PENDING, index=True)
    description: str
    category: Optional[str] = Field(default=None, index=True)
    reference: Optional[str] = None
    extra_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    failure_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    processed_at: Optional[datetime] = None

    def transition_to(self, target: TransactionStatus) -> None:
        if not self.status.can_transition_to(target):
            raise InvalidStatusTransitionError(
                f"Cannot move transaction from {self.status.value} to {target.value}"
            )
        self.status = target
        if target in (TransactionStatus.COMPLETED, TransactionStatus.FAILED):
            self.processed_at = utcnow()


class AccountBalanceHistory(SQLModel, table=True):
    __tablename__ = "account_balance_history"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    account_id: UUID = Field(foreign_key="accounts.id", index=True)
    transaction_id: Optional[UUID] = Field(default=None, foreign_key="transactions.id", index=True)
    balance: Decimal = Field(max_digits=18, decimal_places=2)
    date: datetime = Field(default_factory=utcnow, index=True)


class IdempotencyRecord(SQLModel, table=True):
    __tablename__ = "idempotency_records"
    __table_args__ = (UniqueConstraint("transaction_id"),)

    user_id: UUID = Field(primary_key=True)
    key: str = Field(primary_key=True)
    request_signature: str
    transaction_id: UUID = Field(foreign_key="transactions.id")
