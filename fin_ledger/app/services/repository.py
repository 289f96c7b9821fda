from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from ..models import (
    AccountBalanceHistoryModel,
    AccountModel,
    CardModel,
    CardStatus,
    CardType,
    IdempotencyRecordModel,
    TransactionFilters,
    TransactionModel,
    TransactionStatus,
)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class LedgerRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Account operations -------------------------------------------------
    def add_account(self, **values: Any) -> AccountModel:
        account = AccountModel(**values)
        self.session.add(account)
        self.session.flush()
        self.session.refresh(account)
        return account

    def get_account(self, account_id: UUID) -> Optional[AccountModel]:
        return self.session.get(AccountModel, account_id)

    def get_account_by_number(self, account_number: str) -> Optional[AccountModel]:
        stmt = select(AccountModel).where(AccountModel.account_number == account_number)
        return self.session.exec(stmt).first()

    def list_accounts(self, user_id: UUID) -> list[AccountModel]:
        stmt = (
            select(AccountModel)
            .where(AccountModel.user_id == user_id)
            .order_by(col(AccountModel.is_default).desc(), col(AccountModel.created_at).desc())
        )
        return list(self.session.exec(stmt))

    def clear_default_accounts(self, user_id: UUID) -> None:
        stmt = select(AccountModel).where(
            AccountModel.user_id == user_id, col(AccountModel.is_default).is_(True)
        )
        for account in self.session.exec(stmt):
            account.is_default = False
            self.session.add(account)

    # Card operations ----------------------------------------------------
    def add_card(self, **values: Any) -> CardModel:
        card = CardModel(**values)
        self.session.add(card)
        self.session.flush()
        self.session.refresh(card)
        return card

    def get_card(self, card_id: UUID) -> Optional[CardModel]:
        return self.session.get(CardModel, card_id)

    def get_card_by_number(self, card_number: str) -> Optional[CardModel]:
        stmt = select(CardModel).where(CardModel.card_number == card_number)
        return self.session.exec(stmt).first()

    def list_cards(
        self,
        user_id: UUID,
        status: Optional[CardStatus] = None,
        card_type: Optional[CardType] = None,
    ) -> list[CardModel]:
        stmt = select(CardModel).where(CardModel.user_id == user_id)
        if status is not None:
            stmt = stmt.where(CardModel.status == status)
        else:
            stmt = stmt.where(CardModel.status != CardStatus.DELETED)
        if card_type is not None:
            stmt = stmt.where(CardModel.card_type == card_type)
        stmt = stmt.order_by(col(CardModel.is_default).desc(), col(CardModel.created_at).desc())
        return list(self.session.exec(stmt))

    def count_live_cards(self, user_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(CardModel)
            .where(CardModel.user_id == user_id, CardModel.status != CardStatus.DELETED)
        )
        return self.session.exec(stmt).one()

    def clear_default_cards(self, user_id: UUID) -> None:
        stmt = select(CardModel).where(
            CardModel.user_id == user_id, col(CardModel.is_default).is_(True)
        )
        for card in self.session.exec(stmt):
            card.is_default = False
            self.session.add(card)

    def first_other_active_card(self, user_id: UUID, exclude_id: UUID) -> Optional[CardModel]:
        stmt = (
            select(CardModel)
            .where(
                CardModel.user_id == user_id,
                CardModel.id != exclude_id,
                CardModel.status == CardStatus.ACTIVE,
            )
            .order_by(col(CardModel.created_at).desc())
        )
        return self.session.exec(stmt).first()

    def count_pending_for_card(self, card_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(TransactionModel)
            .where(
                TransactionModel.card_id == card_id,
                TransactionModel.status == TransactionStatus.PENDING,
            )
        )
        return self.session.exec(stmt).one()

    # Transactions -------------------------------------------------------
    def add_transaction(self, **values: Any) -> TransactionModel:
        transaction = TransactionModel(**values)
        self.session.add(transaction)
        self.session.flush()
        self.session.refresh(transaction)
        return transaction

    def get_transaction(self, id_: UUID) -> Optional[TransactionModel]:
        return self.session.get(TransactionModel, id_)

    def find_user_transaction(
        self, user_id: UUID, transaction_id: str
    ) -> Optional[TransactionModel]:
        stmt = select(TransactionModel).where(
            TransactionModel.transaction_id == transaction_id,
            TransactionModel.user_id == user_id,
        )
        return self.session.exec(stmt).first()

    def _transaction_conditions(
        self, user_id: UUID, filters: Optional[TransactionFilters]
    ) -> list[Any]:
        conditions: list[Any] = [TransactionModel.user_id == user_id]
        if filters is None:
            return conditions
        if filters.type is not None:
            conditions.append(TransactionModel.type == filters.type)
        if filters.status is not None:
            conditions.append(TransactionModel.status == filters.status)
        if filters.category:
            conditions.append(TransactionModel.category == filters.category)
        if filters.start_date is not None:
            conditions.append(col(TransactionModel.created_at) >= as_utc(filters.start_date))
        if filters.end_date is not None:
            conditions.append(col(TransactionModel.created_at) <= as_utc(filters.end_date))
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            conditions.append(
                or_(
                    col(TransactionModel.description).ilike(pattern, escape="\\"),
                    col(TransactionModel.transaction_id).ilike(pattern, escape="\\"),
                    col(TransactionModel.reference).ilike(pattern, escape="\\"),
                )
            )
        return conditions

    def list_transactions(
        self,
        user_id: UUID,
        filters: Optional[TransactionFilters],
        offset: int,
        limit: int,
    ) -> tuple[list[TransactionModel], int]:
        conditions = self._transaction_conditions(user_id, filters)
        stmt = (
            select(TransactionModel)
            .where(*conditions)
            .order_by(col(TransactionModel.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(TransactionModel).where(*conditions)
        return list(self.session.exec(stmt)), self.session.exec(count_stmt).one()

    # Aggregates ---------------------------------------------------------
    def count_transactions(
        self, user_id: UUID, since: datetime, status: Optional[TransactionStatus] = None
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(TransactionModel)
            .where(
                TransactionModel.user_id == user_id,
                col(TransactionModel.created_at) >= as_utc(since),
            )
        )
        if status is not None:
            stmt = stmt.where(TransactionModel.status == status)
        return self.session.exec(stmt).one()

    def completed_totals(self, user_id: UUID, since: datetime) -> tuple[Any, Any]:
        stmt = select(func.sum(TransactionModel.amount), func.avg(TransactionModel.amount)).where(
            TransactionModel.user_id == user_id,
            TransactionModel.status == TransactionStatus.COMPLETED,
            col(TransactionModel.created_at) >= as_utc(since),
        )
        total, average = self.session.exec(stmt).one()
        return total, average

    def completed_by_type(self, user_id: UUID, since: datetime) -> list[tuple[Any, int, Any]]:
        stmt = (
            select(
                TransactionModel.type,
                func.count(col(TransactionModel.id)),
                func.sum(TransactionModel.amount),
            )
            .where(
                TransactionModel.user_id == user_id,
                TransactionModel.status == TransactionStatus.COMPLETED,
                col(TransactionModel.created_at) >= as_utc(since),
            )
            .group_by(TransactionModel.type)
        )
        return [tuple(row) for row in self.session.exec(stmt)]

    def completed_by_category(
        self, user_id: UUID, since: datetime
    ) -> list[tuple[str, int, Any]]:
        stmt = (
            select(
                TransactionModel.category,
                func.count(col(TransactionModel.id)),
                func.sum(TransactionModel.amount),
            )
            .where(
                TransactionModel.user_id == user_id,
                TransactionModel.status == TransactionStatus.COMPLETED,
                col(TransactionModel.category).is_not(None),
                col(TransactionModel.created_at) >= as_utc(since),
            )
            .group_by(TransactionModel.category)
        )
        return [tuple(row) for row in self.session.exec(stmt)]

    def count_by_status(self, user_id: UUID, since: datetime) -> list[tuple[Any, int]]:
        stmt = (
            select(TransactionModel.status, func.count(col(TransactionModel.id)))
            .where(
                TransactionModel.user_id == user_id,
                col(TransactionModel.created_at) >= as_utc(since),
            )
            .group_by(TransactionModel.status)
        )
        return [tuple(row) for row in self.session.exec(stmt)]

    # Balance history ----------------------------------------------------
    def add_balance_history(
        self,
        *,
        account_id: UUID,
        balance: Decimal,
        transaction_id: Optional[UUID],
    ) -> AccountBalanceHistoryModel:
        entry = AccountBalanceHistoryModel(
            account_id=account_id,
            balance=balance,
            transaction_id=transaction_id,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_balance_history(
        self,
        account_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AccountBalanceHistoryModel]:
        stmt = select(AccountBalanceHistoryModel).where(
            AccountBalanceHistoryModel.account_id == account_id
        )
        if start is not None:
            stmt = stmt.where(col(AccountBalanceHistoryModel.date) >= as_utc(start))
        if end is not None:
            stmt = stmt.where(col(AccountBalanceHistoryModel.date) <= as_utc(end))
        stmt = stmt.order_by(col(AccountBalanceHistoryModel.date).asc())
        return list(self.session.exec(stmt))

    def list_history_for_transaction(self, id_: UUID) -> list[AccountBalanceHistoryModel]:
        stmt = select(AccountBalanceHistoryModel).where(
            AccountBalanceHistoryModel.transaction_id == id_
        )
        return list(self.session.exec(stmt))

    # Idempotency store --------------------------------------------------
    def fetch_idempotency(self, user_id: UUID, key: str) -> Optional[IdempotencyRecordModel]:
        return self.session.get(IdempotencyRecordModel, (user_id, key))

    def save_idempotency(
        self,
        *,
        user_id: UUID,
        key: str,
        signature: str,
        transaction_id: UUID,
    ) -> None:
        record = IdempotencyRecordModel(
            user_id=user_id,
            key=key,
            request_signature=signature,
            transaction_id=transaction_id,
        )
        self.session.add(record)
        self.session.flush()
