from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response, status

from ..core.dependencies import (
    get_account_service,
    get_card_service,
    get_current_user_id,
    get_reporting_service,
    get_transaction_service,
)
from ..models import (
    AccountCreate,
    AccountResponse,
    BalanceHistoryResponse,
    CardBlockRequest,
    CardCreate,
    CardResponse,
    CardStatus,
    CardType,
    CardUpdate,
    ReceiptResponse,
    TransactionCreate,
    TransactionFilters,
    TransactionPage,
    TransactionResponse,
    TransactionStats,
    TransactionStatus,
    TransactionType,
)
from ..services import AccountService, CardService, ReportingService, TransactionService


transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])

@transaction_router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    response: Response,
    user_id: UUID = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
    idempotency_key: Optional[str] = Header(
        default=None, convert_underscores=False, alias="Idempotency-Key"
    ),
) -> TransactionResponse:
    transaction, created = service.execute(user_id, payload, idempotency_key)
    if not created:
        response.status_code = status.HTTP_200_OK
    return transaction

@transaction_router.get("", response_model=TransactionPage)
def list_transactions(
    page: int = 1,
    limit: Optional[int] = None,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    category: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: ReportingService = Depends(get_reporting_service),
) -> TransactionPage:
    filters = TransactionFilters(
        type=type,
        status=status,
        category=category,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return service.list_transactions(user_id, filters, page=page, limit=limit)

@transaction_router.get("/stats", response_model=TransactionStats)
def get_transaction_stats(
    period: str = "monthly",
    user_id: UUID = Depends(get_current_user_id),
    service: ReportingService = Depends(get_reporting_service),
) -> TransactionStats:
    return service.get_statistics(user_id, period)

@transaction_router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    user_id: UUID = Depends(get_current_user_id),
    service: ReportingService = Depends(get_reporting_service),
) -> TransactionResponse:
    return service.get_transaction(user_id, transaction_id)

@transaction_router.get("/{transaction_id}/receipt", response_model=ReceiptResponse)
def get_receipt(
    transaction_id: str,
    user_id: UUID = Depends(get_current_user_id),
    service: ReportingService = Depends(get_reporting_service),
) -> ReceiptResponse:
    return service.get_receipt(user_id, transaction_id)

@transaction_router.patch("/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: str,
    user_id: UUID = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    return service.cancel(user_id, transaction_id)


account_router = APIRouter(prefix="/accounts", tags=["accounts"])

@account_router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.create_account(user_id, payload)

@account_router.get("", response_model=list[AccountResponse])
def list_accounts(
    user_id: UUID = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
) -> list[AccountResponse]:
    return service.list_accounts(user_id)

@account_router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.get_account(user_id, account_id)

@account_router.get("/{account_id}/history", response_model=BalanceHistoryResponse)
def get_account_history(
    account_id: UUID,
    period: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: ReportingService = Depends(get_reporting_service),
) -> BalanceHistoryResponse:
    return service.get_balance_history(user_id, account_id, period=period, start=start, end=end)

@account_router.patch("/{account_id}/set-default", response_model=AccountResponse)
def set_default_account(
    account_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.set_default(user_id, account_id)


card_router = APIRouter(prefix="/cards", tags=["cards"])

@card_router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
def create_card(
    payload: CardCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> CardResponse:
    return service.create_card(user_id, payload)

@card_router.get("", response_model=list[CardResponse])
def list_cards(
    status: Optional[CardStatus] = None,
    card_type: Optional[CardType] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> list[CardResponse]:
    return service.list_cards(user_id, status=status, card_type=card_type)

@card_router.get("/{card_id}", response_model=CardResponse)
def get_card(
    card_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> CardResponse:
    return service.get_card(user_id, card_id)

@card_router.patch("/{card_id}", response_model=CardResponse)
def update_card(
    card_id: UUID,
    payload: CardUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> CardResponse:
    return service.update_card(user_id, card_id, payload)

@card_router.patch("/{card_id}/block", response_model=CardResponse)
def block_card(
    card_id: UUID,
    payload: Optional[CardBlockRequest] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> CardResponse:
    return service.block_card(user_id, card_id, reason=payload.reason if payload else None)

@card_router.patch("/{card_id}/unblock", response_model=CardResponse)
def unblock_card(
    card_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> CardResponse:
    return service.unblock_card(user_id, card_id)

@card_router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_card(
    card_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: CardService = Depends(get_card_service),
) -> None:
    service.delete_card(user_id, card_id)

__all__ = ["account_router", "card_router", "transaction_router"]
