from __future__ import annotations

import logging
import secrets
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.config import settings
from src.clinic_admin.domain.models.gift_card import (
    GiftCardBalance,
    GiftCardCreateRequest,
    GiftCardRedeemRequest,
    GiftCardRedemption,
    GiftCard,
)
from src.clinic_admin.errors import ConflictError, NotFoundError, StoreError, ValidationError
from src.clinic_admin.infra.db.models import GiftCardORM, PatientORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import today

logger = logging.getLogger(__name__)

# No 0/O or 1/I, so codes survive being read aloud or retyped.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_card_code() -> str:
    return "-".join("".join(secrets.choice(CODE_ALPHABET) for _ in range(4)) for _ in range(4))


def is_expired(card: GiftCardORM) -> bool:
    return card.expiration_date is not None and card.expiration_date < today()


class GiftCardService:
    def _code_exists(self, service_store: Store, code: str) -> bool:
        # Codes are unique across all clinics, so the check is unscoped.
        return service_store.first(service_store.select(GiftCardORM).where(GiftCardORM.card_code == code)) is not None

    def create_gift_card(self, store: Store, service_store: Store, payload: GiftCardCreateRequest) -> GiftCardORM:
        if payload.patient_id is not None:
            patient = store.get(PatientORM, payload.patient_id)
            if patient is None or patient.is_deleted:
                raise NotFoundError("Patient not found")

        code: Optional[str] = None
        for _ in range(settings.gift_card_code_attempts):
            candidate = generate_card_code()
            if not self._code_exists(service_store, candidate):
                code = candidate
                break
        if code is None:
            raise StoreError("Failed to generate unique card code")

        card = GiftCardORM(
            **payload.model_dump(),
            card_code=code,
            current_balance=payload.original_amount,
            is_active=True,
            activation_date=today(),
        )
        store.add(card)
        logger.info("Issued gift card %s", card.id)
        return card

    def list_gift_cards(
        self, store: Store, is_active: Optional[bool] = None, patient_id: Optional[UUID] = None
    ) -> List[GiftCardORM]:
        stmt = store.select(GiftCardORM)
        if is_active is not None:
            stmt = stmt.where(GiftCardORM.is_active.is_(is_active))
        if patient_id is not None:
            stmt = stmt.where(GiftCardORM.patient_id == patient_id)
        return store.scalars(stmt.order_by(GiftCardORM.created_at.desc()))

    def get_by_code(self, store: Store, card_code: Optional[str]) -> GiftCardORM:
        if not card_code:
            raise ValidationError("Missing required field: card_code")
        card = store.first(store.select(GiftCardORM).where(GiftCardORM.card_code == card_code.strip().upper()))
        if card is None:
            raise NotFoundError("Gift card not found", valid=False)
        return card

    def check_balance(self, store: Store, card_code: Optional[str]) -> GiftCardBalance:
        card = self.get_by_code(store, card_code)
        expired = is_expired(card)
        return GiftCardBalance(
            valid=card.is_active and not expired and card.current_balance > 0,
            card_code=card.card_code,
            current_balance=card.current_balance,
            original_amount=card.original_amount,
            is_active=card.is_active,
            is_expired=expired,
            expiration_date=card.expiration_date,
            last_used_date=card.last_used_date,
            recipient_name=card.recipient_name,
        )

    def redeem(self, store: Store, payload: GiftCardRedeemRequest) -> GiftCardRedemption:
        card = self.get_by_code(store, payload.card_code)
        if not card.is_active:
            raise ValidationError("Gift card is not active")
        if is_expired(card):
            raise ValidationError("Gift card has expired")
        if card.current_balance < payload.redemption_amount:
            raise ConflictError(
                "Insufficient balance",
                current_balance=card.current_balance,
                requested_amount=payload.redemption_amount,
            )

        new_balance = round(card.current_balance - payload.redemption_amount, 2)
        card.current_balance = new_balance
        card.last_used_date = today()
        card.is_active = new_balance > 0
        store.save(card)
        logger.info("Redeemed %.2f from gift card %s", payload.redemption_amount, card.id)
        return GiftCardRedemption(
            gift_card=GiftCard.model_validate(card),
            redeemed_amount=payload.redemption_amount,
            remaining_balance=new_balance,
            transaction_id=payload.transaction_id,
        )


gift_card_service = GiftCardService()
