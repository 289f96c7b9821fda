import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from ..core.errors import AccountNotFoundError, LedgerValidationError, TransactionNotFoundError
from ..models import (
    AccountBalanceHistoryModel,
    TransactionCreate,
    TransactionFilters,
    TransactionStatus,
    TransactionType,
)
from ..services import LedgerRepository, ReportingService, TransactionService
from ..services.reporting import period_start


@pytest.fixture
def seed(session):
    def _seed(
        user,
        amount="10.00",
        type_=TransactionType.DEPOSIT,
        status=TransactionStatus.COMPLETED,
        created_at=None,
        **kwargs,
    ):
        kwargs.setdefault("description", "seeded")
        transaction = LedgerRepository(session).add_transaction(
            user_id=user,
            type=type_,
            amount=Decimal(amount),
            status=status,
            created_at=created_at or datetime.now(UTC),
            **kwargs,
        )
        session.commit()
        return transaction

    return _seed


def test_list_is_newest_first_and_paginated(session, seed, user_id) -> None:
    base = datetime.now(UTC) - timedelta(hours=1)
    for minute in range(5):
        seed(user_id, amount=f"{minute + 1}.00", created_at=base + timedelta(minutes=minute))
    service = ReportingService(session)

    first = service.list_transactions(user_id, page=1, limit=2)
    last = service.list_transactions(user_id, page=3, limit=2)

    assert [item.amount for item in first.items] == [Decimal("5.00"), Decimal("4.00")]
    assert first.pagination.model_dump() == {"current": 1, "pages": 3, "total": 5, "limit": 2}
    assert [item.amount for item in last.items] == [Decimal("1.00")]


def test_list_default_limit(session, seed, user_id) -> None:
    for _ in range(12):
        seed(user_id)

    page = ReportingService(session).list_transactions(user_id)

    assert len(page.items) == 10
    assert page.pagination.pages == 2


def test_list_only_shows_own_transactions(session, seed, user_id) -> None:
    seed(user_id)
    seed(uuid.uuid4())

    page = ReportingService(session).list_transactions(user_id)

    assert page.pagination.total == 1
    assert page.items[0].user_id == user_id


def test_list_filters(session, seed, user_id) -> None:
    seed(user_id, type_=TransactionType.DEPOSIT, category="salary", description="March payroll")
    seed(user_id, type_=TransactionType.PAYMENT, category="food", reference="RCPT-77")
    seed(user_id, type_=TransactionType.PAYMENT, status=TransactionStatus.FAILED)
    service = ReportingService(session)

    def total_for(**filters):
        return service.list_transactions(user_id, TransactionFilters(**filters)).pagination.total

    assert total_for(type=TransactionType.PAYMENT) == 2
    assert total_for(status=TransactionStatus.FAILED) == 1
    assert total_for(category="salary") == 1
    assert total_for(search="payroll") == 1
    assert total_for(search="rcpt") == 1
    assert total_for(type=TransactionType.PAYMENT, status=TransactionStatus.COMPLETED) == 1


def test_search_matches_transaction_id(session, seed, user_id) -> None:
    target = seed(user_id)
    seed(user_id)

    page = ReportingService(session).list_transactions(
        user_id, TransactionFilters(search=target.transaction_id[:8])
    )

    assert [item.transaction_id for item in page.items] == [target.transaction_id]


def test_search_treats_wildcards_literally(session, seed, user_id) -> None:
    seed(user_id, description="50% off groceries")
    seed(user_id, description="500 riyal voucher")
    seed(user_id, description="gift_card top up")
    seed(user_id, description="giftXcard top up")
    service = ReportingService(session)

    def descriptions_for(search):
        page = service.list_transactions(user_id, TransactionFilters(search=search))
        return [item.description for item in page.items]

    assert descriptions_for("50%") == ["50% off groceries"]
    assert descriptions_for("gift_card") == ["gift_card top up"]


def test_list_date_range(session, seed, user_id) -> None:
    now = datetime.now(UTC)
    seed(user_id, amount="1.00", created_at=now - timedelta(days=10))
    seed(user_id, amount="2.00", created_at=now - timedelta(days=5))
    seed(user_id, amount="3.00", created_at=now - timedelta(days=1))

    page = ReportingService(session).list_transactions(
        user_id,
        TransactionFilters(start_date=now - timedelta(days=7), end_date=now - timedelta(days=2)),
    )

    assert [item.amount for item in page.items] == [Decimal("2.00")]


@pytest.mark.parametrize(
    ("page", "limit", "filters"),
    [
        (0, 10, None),
        (1, 0, None),
        (1, 101, None),
        (
            1,
            10,
            TransactionFilters(
                start_date=datetime(2024, 2, 1, tzinfo=UTC),
                end_date=datetime(2024, 1, 1, tzinfo=UTC),
            ),
        ),
    ],
)
def test_list_rejects_bad_arguments(session, user_id, page, limit, filters) -> None:
    service = ReportingService(session)

    with pytest.raises(LedgerValidationError):
        service.list_transactions(user_id, filters, page=page, limit=limit)


def test_get_transaction_hidden_from_other_users(session, seed, user_id) -> None:
    transaction = seed(user_id)
    service = ReportingService(session)

    assert service.get_transaction(user_id, transaction.transaction_id).id == transaction.id
    with pytest.raises(TransactionNotFoundError):
        service.get_transaction(uuid.uuid4(), transaction.transaction_id)


def test_receipt_only_for_completed(session, seed, user_id) -> None:
    completed = seed(user_id)
    failed = seed(user_id, status=TransactionStatus.FAILED)
    service = ReportingService(session)

    receipt = service.get_receipt(user_id, completed.transaction_id)
    assert receipt.transaction.transaction_id == completed.transaction_id
    assert receipt.generated_at.tzinfo is not None

    with pytest.raises(LedgerValidationError, match="completed transactions"):
        service.get_receipt(user_id, failed.transaction_id)


def test_statistics_overview_and_breakdowns(session, seed, user_id) -> None:
    seed(user_id, amount="100.00", type_=TransactionType.DEPOSIT, category="salary")
    seed(user_id, amount="50.00", type_=TransactionType.PAYMENT, category="food")
    seed(user_id, amount="30.00", type_=TransactionType.WITHDRAWAL, status=TransactionStatus.FAILED)
    seed(user_id, amount="10.00", status=TransactionStatus.PENDING)
    seed(uuid.uuid4(), amount="999.00")

    stats = ReportingService(session).get_statistics(user_id, "monthly")

    assert stats.period == "monthly"
    assert stats.overview.total_transactions == 4
    assert stats.overview.completed_transactions == 2
    assert stats.overview.success_rate == Decimal("50.00")
    assert stats.overview.total_amount == Decimal("150.00")
    assert stats.overview.average_amount == Decimal("75.00")
    assert {row.type: (row.count, row.amount) for row in stats.by_type} == {
        TransactionType.DEPOSIT: (1, Decimal("100.00")),
        TransactionType.PAYMENT: (1, Decimal("50.00")),
    }
    assert {row.category: row.count for row in stats.by_category} == {"salary": 1, "food": 1}
    assert {row.status: row.count for row in stats.by_status} == {
        TransactionStatus.COMPLETED: 2,
        TransactionStatus.FAILED: 1,
        TransactionStatus.PENDING: 1,
    }


def test_statistics_window_excludes_old_rows(session, seed, user_id) -> None:
    seed(user_id, amount="5.00")
    seed(user_id, amount="7.00", created_at=datetime.now(UTC) - timedelta(days=400))

    stats = ReportingService(session).get_statistics(user_id, "yearly")

    assert stats.overview.total_transactions == 1
    assert stats.overview.total_amount == Decimal("5.00")


def test_statistics_empty_and_unknown_period(session, user_id) -> None:
    stats = ReportingService(session).get_statistics(user_id, "fortnightly")

    assert stats.period == "monthly"
    assert stats.overview.total_transactions == 0
    assert stats.overview.success_rate == Decimal("0.00")
    assert stats.overview.average_amount == Decimal("0.00")
    assert stats.by_type == []


def test_period_start_boundaries() -> None:
    now = datetime(2024, 5, 17, 13, 45, tzinfo=UTC)

    assert period_start("daily", now) == datetime(2024, 5, 16, 13, 45, tzinfo=UTC)
    assert period_start("weekly", now) == datetime(2024, 5, 10, 13, 45, tzinfo=UTC)
    assert period_start("monthly", now) == datetime(2024, 5, 1, tzinfo=UTC)
    assert period_start("yearly", now) == datetime(2024, 1, 1, tzinfo=UTC)


def test_balance_history_follows_transactions(session, make_account, user_id) -> None:
    account = make_account(user_id, "0")
    service = TransactionService(session)
    for amount in ("10.00", "15.00"):
        service.execute(
            user_id,
            TransactionCreate(
                type=TransactionType.DEPOSIT,
                amount=Decimal(amount),
                description="top up",
                receiver_account_id=account.id,
            ),
        )

    history = ReportingService(session).get_balance_history(user_id, account.id)

    assert [entry.balance for entry in history.items] == [Decimal("10.00"), Decimal("25.00")]
    assert all(entry.transaction_id is not None for entry in history.items)


def test_balance_history_periods(session, make_account, user_id) -> None:
    account = make_account(user_id, "0")
    session.add(
        AccountBalanceHistoryModel(
            account_id=account.id,
            balance=Decimal("42.00"),
            date=datetime.now(UTC) - timedelta(days=40),
        )
    )
    session.add(AccountBalanceHistoryModel(account_id=account.id, balance=Decimal("43.00")))
    session.commit()
    service = ReportingService(session)

    assert len(service.get_balance_history(user_id, account.id).items) == 1
    assert len(service.get_balance_history(user_id, account.id, period="90d").items) == 2
    assert len(service.get_balance_history(user_id, account.id, period="bogus").items) == 1

    old_only = service.get_balance_history(
        user_id,
        account.id,
        start=datetime.now(UTC) - timedelta(days=60),
        end=datetime.now(UTC) - timedelta(days=30),
    )
    assert [entry.balance for entry in old_only.items] == [Decimal("42.00")]


def test_balance_history_rejects_bad_requests(session, make_account, user_id) -> None:
    account = make_account(user_id)
    service = ReportingService(session)

    with pytest.raises(AccountNotFoundError):
        service.get_balance_history(uuid.uuid4(), account.id)
    with pytest.raises(LedgerValidationError):
        service.get_balance_history(
            user_id,
            account.id,
            start=datetime.now(UTC),
            end=datetime.now(UTC) - timedelta(days=1),
        )
