"""Single-row balance mutations for accounts and cards.

Both operations are one conditional UPDATE each, so the funds check and the
write happen atomically in the store. Two debits racing on the same row are
serialized by the database and the loser sees zero updated rows instead of
overdrawing. Callers own the surrounding transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session

from ..core.errors import (
    AccountNotFoundError,
    CardNotFoundError,
    InsufficientFundsError,
    LedgerValidationError,
)
from ..models import AccountModel, CardModel


logger = logging.getLogger(__name__)


class TargetKind(str, Enum):
    ACCOUNT = "account"
    CARD = "card"


@dataclass(frozen=True)
class BalanceTarget:
    kind: TargetKind
    id: UUID

    @classmethod
    def account(cls, account_id: UUID) -> "BalanceTarget":
        return cls(TargetKind.ACCOUNT, account_id)

    @classmethod
    def card(cls, card_id: UUID) -> "BalanceTarget":
        return cls(TargetKind.CARD, card_id)

    @property
    def model(self) -> type[Union[AccountModel, CardModel]]:
        return AccountModel if self.kind is TargetKind.ACCOUNT else CardModel


class BalanceMutator:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _check_amount(self, amount: Decimal) -> None:
        if amount <= 0:
            raise LedgerValidationError("Amount must be greater than 0")

    def _not_found(self, target: BalanceTarget) -> Exception:
        if target.kind is TargetKind.ACCOUNT:
            return AccountNotFoundError(f"Account {target.id} not found")
        return CardNotFoundError(f"Card {target.id} not found")

    def credit(self, target: BalanceTarget, amount: Decimal) -> None:
        self._check_amount(amount)
        model = target.model
        stmt = (
            update(model)
            .where(model.id == target.id)
            .values(balance=model.balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)
        if result.rowcount == 0:
            raise self._not_found(target)
        logger.debug(
            "balance.credit",
            extra={"target": target.kind.value, "target_id": str(target.id), "amount": str(amount)},
        )

    def debit(self, target: BalanceTarget, amount: Decimal) -> None:
        self._check_amount(amount)
        model = target.model
        stmt = (
            update(model)
            .where(model.id == target.id)
            .where(model.balance >= amount)
            .values(balance=model.balance - amount)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)
        if result.rowcount == 0:
            if self.session.get(model, target.id) is None:
                raise self._not_found(target)
            if target.kind is TargetKind.CARD:
                raise InsufficientFundsError("Insufficient card balance")
            raise InsufficientFundsError("Insufficient balance")
        logger.debug(
            "balance.debit",
            extra={"target": target.kind.value, "target_id": str(target.id), "amount": str(amount)},
        )
