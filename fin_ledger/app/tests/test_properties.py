"""Property tests for the ledger invariants.

Each example builds its own in-memory database so hypothesis can replay
examples without sharing state through function-scoped fixtures. Amounts
are whole numbers because SQLite keeps NUMERIC values as floats.
"""
import uuid
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from ..core.db import create_engine_for_url
from ..core.errors import InsufficientFundsError, InvalidStatusTransitionError
from ..models import (
    AccountBalanceHistoryModel,
    AccountModel,
    CardModel,
    CardNetwork,
    CardType,
    TransactionCreate,
    TransactionModel,
    TransactionStatus,
    TransactionType,
)
from ..services import TransactionService
from ..services.card_validation import luhn_check, mask_card_number
from .conftest import fresh_balance

OPERATIONS = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "withdraw", "transfer", "card_payment", "card_refund"]),
        st.integers(min_value=1, max_value=500),
    ),
    max_size=15,
)


@contextmanager
def memory_session():
    engine = create_engine_for_url("sqlite://")
    SQLModel.metadata.create_all(engine)
    try:
        with Session(engine) as session:
            yield session
    finally:
        engine.dispose()


def add_account(session: Session, user_id: uuid.UUID, balance: int) -> AccountModel:
    account = AccountModel(
        user_id=user_id,
        full_name="Property Holder",
        account_number=uuid.uuid4().hex[:16],
        balance=Decimal(balance),
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


def add_card(session: Session, user_id: uuid.UUID, balance: int) -> CardModel:
    card = CardModel(
        user_id=user_id,
        card_holder_name="PROPERTY HOLDER",
        card_number="4111111111111111",
        cvv="123",
        expiry_date=date(date.today().year + 2, 12, 31),
        network=CardNetwork.VISA,
        card_type=CardType.DEBIT,
        bank="Test Bank",
        balance=Decimal(balance),
    )
    session.add(card)
    session.commit()
    session.refresh(card)
    return card


@given(operations=OPERATIONS, opening=st.integers(min_value=0, max_value=300))
@settings(max_examples=50, deadline=None)
def test_balances_follow_a_simple_model(operations, opening) -> None:
    user_id = uuid.uuid4()
    with memory_session() as session:
        primary = add_account(session, user_id, opening)
        savings = add_account(session, user_id, 0)
        card = add_card(session, user_id, opening)
        ids = {"primary": primary.id, "savings": savings.id, "card": card.id}
        expected = {"primary": opening, "savings": 0, "card": opening}
        expected_history = 0
        service = TransactionService(session)

        for kind, amount in operations:
            if kind == "deposit":
                payload = dict(type=TransactionType.DEPOSIT, receiver_account_id=ids["primary"])
                debits, credits, touched = [], ["primary"], 1
            elif kind == "withdraw":
                payload = dict(type=TransactionType.WITHDRAWAL, sender_account_id=ids["primary"])
                debits, credits, touched = ["primary"], [], 1
            elif kind == "transfer":
                payload = dict(
                    type=TransactionType.TRANSFER,
                    sender_account_id=ids["primary"],
                    receiver_account_id=ids["savings"],
                )
                debits, credits, touched = ["primary"], ["savings"], 2
            elif kind == "card_payment":
                payload = dict(type=TransactionType.PAYMENT, card_id=ids["card"])
                debits, credits, touched = ["card"], [], 0
            else:
                payload = dict(type=TransactionType.REFUND, card_id=ids["card"])
                debits, credits, touched = [], ["card"], 0

            should_succeed = all(expected[name] >= amount for name in debits)
            try:
                response, _ = service.execute(
                    user_id,
                    TransactionCreate(amount=Decimal(amount), description=kind, **payload),
                )
            except InsufficientFundsError:
                assert not should_succeed
            else:
                assert should_succeed
                assert response.status is TransactionStatus.COMPLETED
                for name in debits:
                    expected[name] -= amount
                for name in credits:
                    expected[name] += amount
                expected_history += touched

            assert fresh_balance(session, AccountModel, ids["primary"]) == expected["primary"]
            assert fresh_balance(session, AccountModel, ids["savings"]) == expected["savings"]
            assert fresh_balance(session, CardModel, ids["card"]) == expected["card"]
            assert min(expected.values()) >= 0

        statuses = session.exec(select(TransactionModel.status)).all()
        assert len(statuses) == len(operations)
        assert set(statuses) <= {TransactionStatus.COMPLETED, TransactionStatus.FAILED}

        history_rows = session.exec(
            select(func.count()).select_from(AccountBalanceHistoryModel)
        ).one()
        assert history_rows == expected_history


@given(amount=st.integers(min_value=1, max_value=1000), repeats=st.integers(min_value=1, max_value=5))
@settings(max_examples=25, deadline=None)
def test_replayed_key_applies_once(amount, repeats) -> None:
    user_id = uuid.uuid4()
    with memory_session() as session:
        account = add_account(session, user_id, 0)
        service = TransactionService(session)
        payload = TransactionCreate(
            type=TransactionType.DEPOSIT,
            amount=Decimal(amount),
            description="replayed",
            receiver_account_id=account.id,
        )

        results = [service.execute(user_id, payload, idempotency_key="once") for _ in range(repeats)]

        assert len({response.transaction_id for response, _ in results}) == 1
        assert [created for _, created in results] == [True] + [False] * (repeats - 1)
        assert fresh_balance(session, AccountModel, account.id) == amount


@given(
    source=st.sampled_from(list(TransactionStatus)),
    target=st.sampled_from(list(TransactionStatus)),
)
def test_only_pending_can_move(source, target) -> None:
    transaction = TransactionModel(
        user_id=uuid.uuid4(),
        type=TransactionType.DEPOSIT,
        amount=Decimal("1.00"),
        description="transition",
        status=source,
    )
    allowed = source is TransactionStatus.PENDING and target is not TransactionStatus.PENDING

    if allowed:
        transaction.transition_to(target)
        assert transaction.status is target
    else:
        with pytest.raises(InvalidStatusTransitionError):
            transaction.transition_to(target)
        assert transaction.status is source


@given(body=st.text(alphabet="0123456789", min_size=12, max_size=18))
def test_exactly_one_luhn_check_digit(body) -> None:
    assert sum(luhn_check(body + str(digit)) for digit in range(10)) == 1


@given(digits=st.text(alphabet="0123456789", min_size=8, max_size=19))
def test_mask_keeps_length_and_edges(digits) -> None:
    masked = mask_card_number(digits)

    assert len(masked) == len(digits)
    assert masked[:4] == digits[:4]
    assert masked[-4:] == digits[-4:]
    assert set(masked[4:-4]) <= {"*"}
