"""Turns a typed transaction into the balance mutations it implies.

Endpoint rules per type:

    DEPOSIT / REFUND     receiver account, sender account or card (any one)
    WITHDRAWAL / PAYMENT sender account or card
    TRANSFER             (sender account or card) and a receiver account,
                         sender and receiver must differ

WITHDRAWAL and PAYMENT debit *every* funding source supplied: when both a
sender account and a card are given, each one is debited by the full amount.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ..core.errors import InvalidTransactionStructureError, LedgerValidationError
from ..models import TransactionType
from .balances import BalanceMutator, BalanceTarget


@dataclass(frozen=True)
class TransactionEndpoints:
    sender_account_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None

    @property
    def has_any(self) -> bool:
        return any((self.sender_account_id, self.receiver_account_id, self.card_id))

    @property
    def has_funding_source(self) -> bool:
        return bool(self.sender_account_id or self.card_id)


@dataclass
class ProcessingResult:
    credited: list[BalanceTarget] = field(default_factory=list)
    debited: list[BalanceTarget] = field(default_factory=list)
    history_account_ids: list[UUID] = field(default_factory=list)


class TransactionProcessor:
    def __init__(self, mutator: BalanceMutator) -> None:
        self.mutator = mutator

    def validate_structure(
        self, transaction_type: TransactionType, endpoints: TransactionEndpoints
    ) -> None:
        if transaction_type in (TransactionType.DEPOSIT, TransactionType.REFUND):
            if not endpoints.has_any:
                label = transaction_type.value.capitalize()
                raise InvalidTransactionStructureError(
                    f"{label} requires a receiver account, sender account, or card"
                )
        elif transaction_type in (TransactionType.WITHDRAWAL, TransactionType.PAYMENT):
            if not endpoints.has_funding_source:
                label = transaction_type.value.capitalize()
                raise InvalidTransactionStructureError(
                    f"{label} requires a sender account or card"
                )
        elif transaction_type is TransactionType.TRANSFER:
            if not endpoints.has_funding_source:
                raise InvalidTransactionStructureError(
                    "Transfer requires a sender account or card"
                )
            if endpoints.receiver_account_id is None:
                raise InvalidTransactionStructureError("Transfer requires a receiver account")
            if endpoints.sender_account_id == endpoints.receiver_account_id:
                raise InvalidTransactionStructureError("Cannot transfer to the same account")
        else:
            raise LedgerValidationError("Invalid transaction type")

    def process(
        self,
        transaction_type: TransactionType,
        amount: Decimal,
        endpoints: TransactionEndpoints,
    ) -> ProcessingResult:
        self.validate_structure(transaction_type, endpoints)
        result = ProcessingResult()

        if transaction_type in (TransactionType.DEPOSIT, TransactionType.REFUND):
            self._process_inflow(amount, endpoints, result)
        elif transaction_type in (TransactionType.WITHDRAWAL, TransactionType.PAYMENT):
            self._process_outflow(amount, endpoints, result)
        elif transaction_type is TransactionType.TRANSFER:
            self._process_transfer(amount, endpoints, result)
        else:
            raise LedgerValidationError("Invalid transaction type")

        result.history_account_ids = self.history_accounts(endpoints)
        return result

    def history_accounts(self, endpoints: TransactionEndpoints) -> list[UUID]:
        account_ids: list[UUID] = []
        if endpoints.sender_account_id is not None:
            account_ids.append(endpoints.sender_account_id)
        if (
            endpoints.receiver_account_id is not None
            and endpoints.receiver_account_id != endpoints.sender_account_id
        ):
            account_ids.append(endpoints.receiver_account_id)
        return account_ids

    def _apply(self, target: BalanceTarget, amount: Decimal, result: ProcessingResult, *, debit: bool) -> None:
        if debit:
            self.mutator.debit(target, amount)
            result.debited.append(target)
        else:
            self.mutator.credit(target, amount)
            result.credited.append(target)

    def _process_inflow(
        self, amount: Decimal, endpoints: TransactionEndpoints, result: ProcessingResult
    ) -> None:
        account_id = endpoints.receiver_account_id or endpoints.sender_account_id
        if account_id is not None:
            self._apply(BalanceTarget.account(account_id), amount, result, debit=False)
        if endpoints.card_id is not None:
            self._apply(BalanceTarget.card(endpoints.card_id), amount, result, debit=False)

    def _process_outflow(
        self, amount: Decimal, endpoints: TransactionEndpoints, result: ProcessingResult
    ) -> None:
        if endpoints.sender_account_id is not None:
            self._apply(BalanceTarget.account(endpoints.sender_account_id), amount, result, debit=True)
        if endpoints.card_id is not None:
            self._apply(BalanceTarget.card(endpoints.card_id), amount, result, debit=True)

    def _process_transfer(
        self, amount: Decimal, endpoints: TransactionEndpoints, result: ProcessingResult
    ) -> None:
        # One funding source only; the sender account wins over the card.
        if endpoints.sender_account_id is not None:
            source = BalanceTarget.account(endpoints.sender_account_id)
        else:
            source = BalanceTarget.card(endpoints.card_id)
        self._apply(source, amount, result, debit=True)
        self._apply(BalanceTarget.account(endpoints.receiver_account_id), amount, result, debit=False)
