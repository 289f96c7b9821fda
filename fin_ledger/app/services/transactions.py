from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..core.errors import (
    AccountNotFoundError,
    CardNotFoundError,
    DuplicateIdempotencyKeyError,
    ForbiddenError,
    InvalidStatusTransitionError,
    LedgerError,
    LedgerValidationError,
    TransactionNotFoundError,
    UnexpectedError,
)
from ..models import (
    CardStatus,
    TransactionCreate,
    TransactionModel,
    TransactionResponse,
    TransactionStatus,
    TransactionType,
)
from .balances import BalanceMutator
from .presenters import transaction_to_response
from .processor import ProcessingResult, TransactionEndpoints, TransactionProcessor
from .repository import LedgerRepository


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class TransactionService:
    """Creates transactions and drives each one to a terminal status.

    The transaction row and its idempotency record are written in the
    session's outer database transaction. Balance mutations and balance
    history run inside a SAVEPOINT, so a failure rolls back every balance
    change while the row itself is kept and committed as FAILED.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        processor: Optional[TransactionProcessor] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.processor = processor or TransactionProcessor(BalanceMutator(session))

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _json_default(self, value: Any) -> Any:
        if isinstance(value, (UUID, Decimal)):
            return str(value)
        return value

    def _encode_signature(self, signature: Tuple[Any, ...]) -> str:
        return json.dumps(signature, default=self._json_default, sort_keys=True)

    def _request_signature(self, payload: TransactionCreate) -> Tuple[Any, ...]:
        return (
            TransactionType(payload.type).value,
            Decimal(payload.amount).quantize(CENT),
            payload.sender_account_id,
            payload.receiver_account_id,
            payload.card_id,
            payload.description,
            payload.category,
            payload.reference,
        )

    def _check_idempotency(
        self,
        user_id: UUID,
        idempotency_key: str,
        request_signature: Tuple[Any, ...],
    ) -> Optional[TransactionModel]:
        record = self.repository.fetch_idempotency(user_id, idempotency_key)
        if record is None:
            return None

        if record.request_signature != self._encode_signature(request_signature):
            raise DuplicateIdempotencyKeyError(
                "Idempotency key was previously used with different parameters"
            )

        return self.repository.get_transaction(record.transaction_id)

    def _validate_input(self, payload: TransactionCreate) -> TransactionType:
        try:
            transaction_type = TransactionType(payload.type)
        except ValueError as exc:
            raise LedgerValidationError("Invalid transaction type") from exc
        if payload.amount is None or Decimal(payload.amount) <= 0:
            raise LedgerValidationError("Amount must be greater than 0")
        return transaction_type

    def _validate_ownership(self, user_id: UUID, endpoints: TransactionEndpoints) -> None:
        if endpoints.sender_account_id is not None:
            sender = self.repository.get_account(endpoints.sender_account_id)
            if sender is None:
                raise AccountNotFoundError("Sender account not found")
            if sender.user_id != user_id:
                raise ForbiddenError("Sender account is not owned by user")

        # Receivers may belong to anyone; they only have to exist.
        if endpoints.receiver_account_id is not None:
            if self.repository.get_account(endpoints.receiver_account_id) is None:
                raise AccountNotFoundError("Receiver account not found")

        if endpoints.card_id is not None:
            card = self.repository.get_card(endpoints.card_id)
            if card is None or card.status is CardStatus.DELETED:
                raise CardNotFoundError("Card not found")
            if card.user_id != user_id:
                raise ForbiddenError("Card is not owned by user")

    def _record_history(self, transaction: TransactionModel, result: ProcessingResult) -> None:
        for account_id in result.history_account_ids:
            account = self.repository.get_account(account_id)
            if account is None:
                raise UnexpectedError("Balance history account disappeared during processing")
            self.session.refresh(account)
            self.repository.add_balance_history(
                account_id=account_id,
                balance=account.balance,
                transaction_id=transaction.id,
            )

    def _fail(self, transaction: TransactionModel, error: LedgerError) -> None:
        transaction.transition_to(TransactionStatus.FAILED)
        transaction.failure_reason = str(error)
        self.session.add(transaction)
        self.session.commit()
        logger.warning(
            "transaction.failed",
            extra={
                "transaction_id": transaction.transaction_id,
                "user_id": str(transaction.user_id),
                "error": type(error).__name__,
                "reason": str(error),
            },
        )

    def _to_response(self, transaction: TransactionModel) -> TransactionResponse:
        return transaction_to_response(self.repository, transaction)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def execute(
        self,
        user_id: UUID,
        payload: TransactionCreate,
        idempotency_key: Optional[str] = None,
    ) -> Tuple[TransactionResponse, bool]:
        """Create and process one transaction.

        Returns the transaction and whether it was created by this call
        (``False`` when an idempotency key replayed an earlier request).
        Processing errors are re-raised after the row is stored as FAILED.
        """
        transaction_type = self._validate_input(payload)
        request_signature = self._request_signature(payload)

        if idempotency_key:
            cached = self._check_idempotency(user_id, idempotency_key, request_signature)
            if cached is not None:
                logger.info(
                    "idempotent.transaction.hit",
                    extra={"user_id": str(user_id), "idempotency_key": idempotency_key},
                )
                return self._to_response(cached), False

        endpoints = TransactionEndpoints(
            sender_account_id=payload.sender_account_id,
            receiver_account_id=payload.receiver_account_id,
            card_id=payload.card_id,
        )
        self.processor.validate_structure(transaction_type, endpoints)
        self._validate_ownership(user_id, endpoints)

        amount = Decimal(payload.amount).quantize(CENT)
        try:
            transaction = self.repository.add_transaction(
                user_id=user_id,
                type=transaction_type,
                amount=amount,
                description=payload.description,
                category=payload.category,
                reference=payload.reference,
                extra_data=payload.metadata,
                sender_account_id=endpoints.sender_account_id,
                receiver_account_id=endpoints.receiver_account_id,
                card_id=endpoints.card_id,
                status=TransactionStatus.PENDING,
            )
            if idempotency_key:
                self.repository.save_idempotency(
                    user_id=user_id,
                    key=idempotency_key,
                    signature=self._encode_signature(request_signature),
                    transaction_id=transaction.id,
                )
        except IntegrityError as exc:
            # A concurrent request with the same key won the race.
            self.session.rollback()
            logger.warning(
                "transaction.insert_conflict",
                extra={"user_id": str(user_id), "idempotency_key": idempotency_key},
            )
            if idempotency_key:
                cached = self._check_idempotency(user_id, idempotency_key, request_signature)
                if cached is not None:
                    return self._to_response(cached), False
            raise UnexpectedError("Failed to create transaction") from exc

        try:
            with self.session.begin_nested():
                result = self.processor.process(transaction_type, amount, endpoints)
                self._record_history(transaction, result)
        except LedgerError as exc:
            self._fail(transaction, exc)
            raise
        except Exception as exc:
            logger.exception(
                "transaction.unexpected_error",
                extra={"transaction_id": transaction.transaction_id},
            )
            error = UnexpectedError("Failed to process transaction")
            self._fail(transaction, error)
            raise error from exc

        transaction.transition_to(TransactionStatus.COMPLETED)
        self.session.add(transaction)
        self.session.commit()
        self.session.refresh(transaction)
        logger.info(
            "transaction.completed",
            extra={
                "transaction_id": transaction.transaction_id,
                "user_id": str(user_id),
                "type": transaction_type.value,
                "amount": str(amount),
            },
        )
        return self._to_response(transaction), True

    def cancel(self, user_id: UUID, transaction_id: str) -> TransactionResponse:
        transaction = self.repository.find_user_transaction(user_id, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError("Transaction not found")
        if transaction.status is not TransactionStatus.PENDING:
            raise InvalidStatusTransitionError("Only pending transactions can be cancelled")

        transaction.transition_to(TransactionStatus.CANCELLED)
        self.session.add(transaction)
        self.session.commit()
        self.session.refresh(transaction)
        logger.info(
            "transaction.cancelled",
            extra={"transaction_id": transaction.transaction_id, "user_id": str(user_id)},
        )
        return self._to_response(transaction)
