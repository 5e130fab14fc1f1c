from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.membership import (
    CreditDeduction,
    CreditDeductionRequest,
    Membership,
    MembershipBalance,
    MembershipCreateRequest,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.memberships.service import membership_service

router = APIRouter(prefix="/memberships", tags=["memberships"])


@router.post("", response_model=Membership, status_code=status.HTTP_201_CREATED)
async def create_membership(
    payload: MembershipCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Membership:
    return Membership.model_validate(membership_service.create_membership(store, payload))


@router.get("", response_model=List[Membership])
async def list_memberships(
    patient_id: Optional[UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Membership]:
    return [Membership.model_validate(m) for m in membership_service.list_memberships(store, patient_id, status_filter)]


@router.get("/balance", response_model=MembershipBalance)
async def check_membership_balance(
    patient_id: UUID = Query(...),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> MembershipBalance:
    return membership_service.check_balance(store, patient_id)


@router.post("/{membership_id}/deduct", response_model=CreditDeduction)
async def deduct_membership_credits(
    membership_id: UUID,
    payload: CreditDeductionRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> CreditDeduction:
    return membership_service.deduct_credits(store, membership_id, payload)
