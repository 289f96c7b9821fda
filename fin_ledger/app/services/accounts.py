from __future__ import annotations

import logging
import secrets
import time
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from ..core.config import get_settings
from ..core.errors import AccountNotFoundError, ConflictError
from ..models import AccountCreate, AccountModel, AccountResponse
from .presenters import account_to_response
from .repository import LedgerRepository


logger = logging.getLogger(__name__)


def generate_account_number() -> str:
    return f"{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


class AccountService:
    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)

    def _get_owned_account(self, user_id: UUID, account_id: UUID) -> AccountModel:
        account = self.repository.get_account(account_id)
        if account is None or account.user_id != user_id:
            raise AccountNotFoundError("Account not found")
        return account

    def _unused_account_number(self) -> str:
        while True:
            candidate = generate_account_number()
            if self.repository.get_account_by_number(candidate) is None:
                return candidate

    def create_account(self, user_id: UUID, payload: AccountCreate) -> AccountResponse:
        account_number = payload.account_number
        if account_number is None:
            account_number = self._unused_account_number()
        elif self.repository.get_account_by_number(account_number) is not None:
            raise ConflictError("Account number already exists")

        if payload.is_default:
            self.repository.clear_default_accounts(user_id)

        account = self.repository.add_account(
            user_id=user_id,
            full_name=payload.full_name,
            account_number=account_number,
            routing_number=payload.routing_number,
            currency=(payload.currency or get_settings().default_currency).upper(),
            balance=payload.balance,
            is_default=payload.is_default,
        )
        self.session.commit()
        self.session.refresh(account)
        logger.info(
            "account.created",
            extra={"account_id": str(account.id), "user_id": str(user_id)},
        )
        return account_to_response(account)

    def list_accounts(self, user_id: UUID) -> list[AccountResponse]:
        return [account_to_response(account) for account in self.repository.list_accounts(user_id)]

    def get_account(self, user_id: UUID, account_id: UUID) -> AccountResponse:
        return account_to_response(self._get_owned_account(user_id, account_id))

    def set_default(self, user_id: UUID, account_id: UUID) -> AccountResponse:
        account = self._get_owned_account(user_id, account_id)
        self.repository.clear_default_accounts(user_id)
        account.is_default = True
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        logger.info(
            "account.default_set",
            extra={"account_id": str(account_id), "user_id": str(user_id)},
        )
        return account_to_response(account)
