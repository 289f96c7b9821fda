from __future__ import annotations

from ..models import (
    AccountBalanceHistoryModel,
    AccountModel,
    AccountResponse,
    BalanceHistoryEntry,
    CardModel,
    CardResponse,
    CardSummary,
    TransactionModel,
    TransactionResponse,
)
from .card_validation import mask_card_number
from .repository import LedgerRepository


def account_to_response(account: AccountModel) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        user_id=account.user_id,
        full_name=account.full_name,
        account_number=account.account_number,
        routing_number=account.routing_number,
        currency=account.currency,
        balance=account.balance,
        is_default=account.is_default,
        created_at=account.created_at,
    )


def card_to_response(card: CardModel) -> CardResponse:
    return CardResponse(
        id=card.id,
        card_holder_name=card.card_holder_name,
        card_number=mask_card_number(card.card_number),
        expiry_date=card.expiry_date,
        network=card.network,
        card_type=card.card_type,
        bank=card.bank,
        balance=card.balance,
        credit_limit=card.credit_limit,
        status=card.status,
        is_default=card.is_default,
        created_at=card.created_at,
        updated_at=card.updated_at,
    )


def history_to_entry(entry: AccountBalanceHistoryModel) -> BalanceHistoryEntry:
    return BalanceHistoryEntry(
        id=entry.id,
        account_id=entry.account_id,
        transaction_id=entry.transaction_id,
        balance=entry.balance,
        date=entry.date,
    )


def transaction_to_response(
    repository: LedgerRepository, transaction: TransactionModel
) -> TransactionResponse:
    sender = (
        repository.get_account(transaction.sender_account_id)
        if transaction.sender_account_id
        else None
    )
    receiver = (
        repository.get_account(transaction.receiver_account_id)
        if transaction.receiver_account_id
        else None
    )
    card = repository.get_card(transaction.card_id) if transaction.card_id else None

    return TransactionResponse(
        id=transaction.id,
        transaction_id=transaction.transaction_id,
        user_id=transaction.user_id,
        type=transaction.type,
        amount=transaction.amount,
        status=transaction.status,
        description=transaction.description,
        category=transaction.category,
        reference=transaction.reference,
        metadata=transaction.extra_data,
        sender_account_id=transaction.sender_account_id,
        receiver_account_id=transaction.receiver_account_id,
        card_id=transaction.card_id,
        sender_account_number=sender.account_number if sender else None,
        receiver_account_number=receiver.account_number if receiver else None,
        card=(
            CardSummary(
                card_number=mask_card_number(card.card_number),
                bank=card.bank,
                card_type=card.card_type,
            )
            if card
            else None
        ),
        failure_reason=transaction.failure_reason,
        created_at=transaction.created_at,
        processed_at=transaction.processed_at,
    )
