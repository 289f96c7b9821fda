from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from ..core.errors import (
    CardNotFoundError,
    ConflictError,
    InvalidCardError,
    LedgerValidationError,
)
from ..models import (
    CardCreate,
    CardModel,
    CardResponse,
    CardStatus,
    CardType,
    CardUpdate,
)
from ..models.db import utcnow
from .card_validation import (
    clean_card_number,
    detect_card_network,
    mask_card_number,
    parse_expiry,
    validate_card_number,
    validate_cvv,
    validate_expiry,
)
from .presenters import card_to_response
from .repository import LedgerRepository


logger = logging.getLogger(__name__)


class CardService:
    """Card lifecycle. Balances are only ever changed by the BalanceMutator."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)

    def _get_owned_card(self, user_id: UUID, card_id: UUID) -> CardModel:
        card = self.repository.get_card(card_id)
        if card is None or card.user_id != user_id or card.status is CardStatus.DELETED:
            raise CardNotFoundError("Card not found")
        return card

    def _save(self, card: CardModel) -> CardModel:
        card.updated_at = utcnow()
        self.session.add(card)
        self.session.commit()
        self.session.refresh(card)
        return card

    def create_card(self, user_id: UUID, payload: CardCreate) -> CardResponse:
        card_number = clean_card_number(payload.card_number)
        if not validate_card_number(card_number):
            raise InvalidCardError("Invalid card number")
        network = detect_card_network(card_number)
        if network is None:
            raise InvalidCardError("Unsupported card network")
        if not validate_cvv(payload.cvv, network):
            raise InvalidCardError("Invalid CVV")
        expiry = parse_expiry(payload.expiry_date)
        if not validate_expiry(expiry):
            raise InvalidCardError("Card is expired or expiry date is out of range")
        if self.repository.get_card_by_number(card_number) is not None:
            raise ConflictError("Card already registered")

        is_first = self.repository.count_live_cards(user_id) == 0
        card = self.repository.add_card(
            user_id=user_id,
            card_holder_name=payload.card_holder_name.strip().upper(),
            card_number=card_number,
            cvv=payload.cvv.strip(),
            expiry_date=expiry,
            network=network,
            card_type=payload.card_type,
            bank=payload.bank.strip(),
            balance=payload.balance,
            credit_limit=payload.credit_limit,
            is_default=is_first,
        )
        self.session.commit()
        self.session.refresh(card)
        logger.info(
            "card.created",
            extra={
                "card_id": str(card.id),
                "user_id": str(user_id),
                "card_number": mask_card_number(card_number),
            },
        )
        return card_to_response(card)

    def list_cards(
        self,
        user_id: UUID,
        status: Optional[CardStatus] = None,
        card_type: Optional[CardType] = None,
    ) -> list[CardResponse]:
        cards = self.repository.list_cards(user_id, status=status, card_type=card_type)
        return [card_to_response(card) for card in cards]

    def get_card(self, user_id: UUID, card_id: UUID) -> CardResponse:
        return card_to_response(self._get_owned_card(user_id, card_id))

    def update_card(self, user_id: UUID, card_id: UUID, payload: CardUpdate) -> CardResponse:
        card = self._get_owned_card(user_id, card_id)
        changes = payload.model_dump(exclude_unset=True)

        if changes.get("card_holder_name"):
            card.card_holder_name = changes["card_holder_name"].strip().upper()
        if "credit_limit" in changes:
            card.credit_limit = changes["credit_limit"]
        if changes.get("is_default"):
            self.repository.clear_default_cards(user_id)
            card.is_default = True
        elif changes.get("is_default") is False:
            card.is_default = False

        card = self._save(card)
        logger.info("card.updated", extra={"card_id": str(card_id), "user_id": str(user_id)})
        return card_to_response(card)

    def block_card(self, user_id: UUID, card_id: UUID, reason: Optional[str] = None) -> CardResponse:
        card = self._get_owned_card(user_id, card_id)
        if card.status is CardStatus.BLOCKED:
            raise LedgerValidationError("Card is already blocked")
        card.status = CardStatus.BLOCKED
        card = self._save(card)
        logger.info(
            "card.blocked",
            extra={
                "card_id": str(card_id),
                "user_id": str(user_id),
                "reason": reason or "Not specified",
            },
        )
        return card_to_response(card)

    def unblock_card(self, user_id: UUID, card_id: UUID) -> CardResponse:
        card = self._get_owned_card(user_id, card_id)
        if card.status is not CardStatus.BLOCKED:
            raise LedgerValidationError("Card is not blocked")
        card.status = CardStatus.ACTIVE
        card = self._save(card)
        logger.info("card.unblocked", extra={"card_id": str(card_id), "user_id": str(user_id)})
        return card_to_response(card)

    def delete_card(self, user_id: UUID, card_id: UUID) -> None:
        card = self._get_owned_card(user_id, card_id)
        if self.repository.count_pending_for_card(card_id) > 0:
            raise ConflictError("Cannot delete card with pending transactions")

        # Soft delete: completed transactions keep pointing at the row.
        was_default = card.is_default
        card.status = CardStatus.DELETED
        card.is_default = False
        self.session.add(card)
        if was_default:
            successor = self.repository.first_other_active_card(user_id, card_id)
            if successor is not None:
                successor.is_default = True
                self.session.add(successor)
        self._save(card)
        logger.info("card.deleted", extra={"card_id": str(card_id), "user_id": str(user_id)})
