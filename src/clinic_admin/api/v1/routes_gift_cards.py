from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.gift_card import (
    GiftCard,
    GiftCardBalance,
    GiftCardCreateRequest,
    GiftCardRedeemRequest,
    GiftCardRedemption,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, get_service_store
from src.clinic_admin.services.gift_cards.service import gift_card_service

router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


@router.post("", response_model=GiftCard, status_code=status.HTTP_201_CREATED)
async def create_gift_card(
    payload: GiftCardCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    service_store: Store = Depends(get_service_store),
) -> GiftCard:
    return GiftCard.model_validate(gift_card_service.create_gift_card(store, service_store, payload))


@router.get("", response_model=List[GiftCard])
async def list_gift_cards(
    is_active: Optional[bool] = Query(default=None),
    patient_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[GiftCard]:
    return [GiftCard.model_validate(c) for c in gift_card_service.list_gift_cards(store, is_active, patient_id)]


@router.get("/balance", response_model=GiftCardBalance)
async def check_gift_card_balance(
    card_code: Optional[str] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> GiftCardBalance:
    return gift_card_service.check_balance(store, card_code)


@router.post("/redeem", response_model=GiftCardRedemption)
async def redeem_gift_card(
    payload: GiftCardRedeemRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> GiftCardRedemption:
    return gift_card_service.redeem(store, payload)
