from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlmodel import Session

from ..core.config import get_settings
from ..core.errors import (
    AccountNotFoundError,
    LedgerValidationError,
    TransactionNotFoundError,
)
from ..models import (
    BalanceHistoryResponse,
    CategoryBreakdown,
    Pagination,
    ReceiptResponse,
    StatsOverview,
    StatusBreakdown,
    TransactionFilters,
    TransactionPage,
    TransactionResponse,
    TransactionStats,
    TransactionStatus,
    TypeBreakdown,
)
from .presenters import history_to_entry, transaction_to_response
from .repository import LedgerRepository, as_utc

CENT = Decimal("0.01")

STATS_PERIODS = ("daily", "weekly", "monthly", "yearly")
HISTORY_PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


def to_money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Window start for a statistics period; unknown periods fall back to monthly."""
    now = now or datetime.now(UTC)
    if period == "daily":
        return now - timedelta(days=1)
    if period == "weekly":
        return now - timedelta(days=7)
    if period == "yearly":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class ReportingService:
    """Read-only views over committed transactions and balance history."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.settings = get_settings()

    def _to_response(self, transaction) -> TransactionResponse:
        return transaction_to_response(self.repository, transaction)

    def list_transactions(
        self,
        user_id: UUID,
        filters: Optional[TransactionFilters] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> TransactionPage:
        if limit is None:
            limit = self.settings.default_page_size
        if page < 1:
            raise LedgerValidationError("Page must be a positive integer")
        if not 1 <= limit <= self.settings.max_page_size:
            raise LedgerValidationError(f"Limit must be 1-{self.settings.max_page_size}")
        if (
            filters is not None
            and filters.start_date is not None
            and filters.end_date is not None
            and as_utc(filters.start_date) > as_utc(filters.end_date)
        ):
            raise LedgerValidationError("start_date must not be after end_date")

        items, total = self.repository.list_transactions(
            user_id, filters, offset=(page - 1) * limit, limit=limit
        )
        return TransactionPage(
            items=[self._to_response(item) for item in items],
            pagination=Pagination(
                current=page,
                pages=math.ceil(total / limit),
                total=total,
                limit=limit,
            ),
        )

    def get_transaction(self, user_id: UUID, transaction_id: str) -> TransactionResponse:
        transaction = self.repository.find_user_transaction(user_id, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError("Transaction not found")
        return self._to_response(transaction)

    def get_receipt(self, user_id: UUID, transaction_id: str) -> ReceiptResponse:
        transaction = self.repository.find_user_transaction(user_id, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError("Transaction not found")
        if transaction.status is not TransactionStatus.COMPLETED:
            raise LedgerValidationError(
                "Receipt is only available for completed transactions"
            )
        return ReceiptResponse(
            transaction=self._to_response(transaction),
            generated_at=datetime.now(UTC),
        )

    def get_statistics(self, user_id: UUID, period: str = "monthly") -> TransactionStats:
        if period not in STATS_PERIODS:
            period = "monthly"
        since = period_start(period)

        total_count = self.repository.count_transactions(user_id, since)
        completed_count = self.repository.count_transactions(
            user_id, since, status=TransactionStatus.COMPLETED
        )
        total_amount, average_amount = self.repository.completed_totals(user_id, since)

        success_rate = Decimal("0.00")
        if total_count:
            success_rate = (Decimal(completed_count) * 100 / Decimal(total_count)).quantize(CENT)

        return TransactionStats(
            period=period,
            since=since,
            overview=StatsOverview(
                total_transactions=total_count,
                completed_transactions=completed_count,
                success_rate=success_rate,
                total_amount=to_money(total_amount),
                average_amount=to_money(average_amount),
            ),
            by_type=[
                TypeBreakdown(type=type_, count=count, amount=to_money(amount))
                for type_, count, amount in self.repository.completed_by_type(user_id, since)
            ],
            by_category=[
                CategoryBreakdown(category=category, count=count, amount=to_money(amount))
                for category, count, amount in self.repository.completed_by_category(
                    user_id, since
                )
            ],
            by_status=[
                StatusBreakdown(status=status, count=count)
                for status, count in self.repository.count_by_status(user_id, since)
            ],
        )

    def get_balance_history(
        self,
        user_id: UUID,
        account_id: UUID,
        period: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> BalanceHistoryResponse:
        account = self.repository.get_account(account_id)
        if account is None or account.user_id != user_id:
            raise AccountNotFoundError("Account not found")

        if start is None:
            window = HISTORY_PERIODS.get(
                period or self.settings.history_default_period, HISTORY_PERIODS["30d"]
            )
            start = datetime.now(UTC) - window
        if end is not None and as_utc(start) > as_utc(end):
            raise LedgerValidationError("start must not be after end")

        entries = self.repository.list_balance_history(account_id, start=start, end=end)
        return BalanceHistoryResponse(
            account_id=account_id,
            items=[history_to_entry(entry) for entry in entries],
        )
