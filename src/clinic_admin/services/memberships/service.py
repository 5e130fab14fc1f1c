from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.membership import (
    CreditDeduction,
    CreditDeductionRequest,
    Membership,
    MembershipBalance,
    MembershipCreateRequest,
)
from src.clinic_admin.errors import ConflictError, NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import MembershipORM, PatientORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import today

logger = logging.getLogger(__name__)


class MembershipService:
    def active_membership(self, store: Store, patient_id: UUID) -> Optional[MembershipORM]:
        return store.first(
            store.select(MembershipORM)
            .where(MembershipORM.patient_id == patient_id, MembershipORM.status == "active")
            .order_by(MembershipORM.created_at.desc())
        )

    def create_membership(self, store: Store, payload: MembershipCreateRequest) -> MembershipORM:
        patient = store.get(PatientORM, payload.patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")
        existing = self.active_membership(store, payload.patient_id)
        if existing is not None:
            raise ConflictError("Patient already has an active membership", membership_id=str(existing.id))

        data = payload.model_dump()
        data["start_date"] = data["start_date"] or today()
        membership = store.add(MembershipORM(**data, status="active"))
        logger.info("Created membership %s for patient %s", membership.id, membership.patient_id)
        return membership

    def list_memberships(self, store: Store, patient_id: Optional[UUID] = None, status: Optional[str] = None) -> List[MembershipORM]:
        stmt = store.select(MembershipORM)
        if patient_id is not None:
            stmt = stmt.where(MembershipORM.patient_id == patient_id)
        if status:
            stmt = stmt.where(MembershipORM.status == status)
        return store.scalars(stmt.order_by(MembershipORM.created_at.desc()))

    def check_balance(self, store: Store, patient_id: UUID) -> MembershipBalance:
        membership = self.active_membership(store, patient_id)
        if membership is None:
            return MembershipBalance(has_active_membership=False)
        return MembershipBalance(
            has_active_membership=True,
            membership_id=membership.id,
            membership_tier=membership.membership_tier,
            membership_name=membership.membership_name,
            credits_balance=membership.credits_balance,
            discount_percentage=membership.discount_percentage,
            benefits=membership.benefits,
            start_date=membership.start_date,
            end_date=membership.end_date,
            auto_renew=membership.auto_renew,
        )

    def deduct_credits(self, store: Store, membership_id: UUID, payload: CreditDeductionRequest) -> CreditDeduction:
        membership = store.get(MembershipORM, membership_id)
        if membership is None:
            raise NotFoundError("Membership not found")
        if membership.status != "active":
            raise ValidationError("Membership is not active")
        if membership.credits_balance < payload.amount:
            raise ConflictError(
                "Insufficient credits",
                current_balance=membership.credits_balance,
                requested_amount=payload.amount,
            )

        membership.credits_balance = round(membership.credits_balance - payload.amount, 2)
        store.save(membership)
        return CreditDeduction(
            membership=Membership.model_validate(membership),
            deducted_amount=payload.amount,
            remaining_balance=membership.credits_balance,
            transaction_id=payload.transaction_id,
        )


membership_service = MembershipService()
