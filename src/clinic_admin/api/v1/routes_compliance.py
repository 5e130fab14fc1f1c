from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from src.clinic_admin.domain.models.compliance import StateConfiguration, StateConfigurationUpsertRequest
from src.clinic_admin.domain.models.user import ADMIN_ROLES
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, require_roles
from src.clinic_admin.services.compliance.service import compliance_service

router = APIRouter(prefix="/state-configurations", tags=["compliance"])


@router.get("", response_model=List[StateConfiguration])
async def list_state_configurations(
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[StateConfiguration]:
    return [StateConfiguration.model_validate(c) for c in compliance_service.list_state_configurations(store)]


@router.put("", response_model=StateConfiguration)
async def upsert_state_configuration(
    payload: StateConfigurationUpsertRequest,
    context: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
    store: Store = Depends(get_caller_store),
) -> StateConfiguration:
    return StateConfiguration.model_validate(compliance_service.upsert_state_configuration(store, payload))
