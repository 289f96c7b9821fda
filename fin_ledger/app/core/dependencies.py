from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from ..services import (
    AccountService,
    CardService,
    LedgerRepository,
    ReportingService,
    TransactionService,
)
from .db import get_session


def get_current_user_id(
    user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> UUID:
    # Authentication happens upstream; we only receive the resolved principal.
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")
    try:
        return UUID(user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user id"
        ) from exc


def get_repository(session: Session = Depends(get_session)) -> LedgerRepository:
    return LedgerRepository(session)


def get_transaction_service(
    session: Session = Depends(get_session),
    repository: LedgerRepository = Depends(get_repository),
) -> TransactionService:
    return TransactionService(session, repository)


def get_reporting_service(
    session: Session = Depends(get_session),
    repository: LedgerRepository = Depends(get_repository),
) -> ReportingService:
    return ReportingService(session, repository)


def get_account_service(
    session: Session = Depends(get_session),
    repository: LedgerRepository = Depends(get_repository),
) -> AccountService:
    return AccountService(session, repository)


def get_card_service(
    session: Session = Depends(get_session),
    repository: LedgerRepository = Depends(get_repository),
) -> CardService:
    return CardService(session, repository)
