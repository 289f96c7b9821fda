import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db as core_db
from ..core.db import create_engine_for_url, get_session, set_engine
from ..main import app
from ..models import AccountModel, CardModel, CardNetwork, CardType


def auth(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine) -> Session:
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def client(engine) -> TestClient:
    original_engine = core_db.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as db_session:
            yield db_session

    app.dependency_overrides[get_session] = _get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_account(session) -> Callable[..., AccountModel]:
    def _make(user: uuid.UUID, balance: str = "0", is_default: bool = False) -> AccountModel:
        account = AccountModel(
            user_id=user,
            full_name="Test Holder",
            account_number=uuid.uuid4().hex[:16],
            balance=Decimal(balance),
            is_default=is_default,
        )
        session.add(account)
        session.commit()
        session.refresh(account)
        return account

    return _make


@pytest.fixture
def make_card(session) -> Callable[..., CardModel]:
    def _make(
        user: uuid.UUID,
        balance: str = "0",
        credit_limit: Optional[str] = None,
        card_type: CardType = CardType.DEBIT,
    ) -> CardModel:
        card = CardModel(
            user_id=user,
            card_holder_name="TEST HOLDER",
            card_number="4" + str(uuid.uuid4().int)[:15],
            cvv="123",
            expiry_date=date(date.today().year + 3, 12, 31),
            network=CardNetwork.VISA,
            card_type=card_type,
            bank="Test Bank",
            balance=Decimal(balance),
            credit_limit=Decimal(credit_limit) if credit_limit is not None else None,
        )
        session.add(card)
        session.commit()
        session.refresh(card)
        return card

    return _make


def fresh_balance(session: Session, model, id_) -> Decimal:
    session.expire_all()
    return session.get(model, id_).balance
