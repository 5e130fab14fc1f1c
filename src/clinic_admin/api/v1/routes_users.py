from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.clinic_admin.domain.models.clinic import Role
from src.clinic_admin.domain.models.user import ADMIN_ROLES, User, UserCreateRequest, UserRole, UserUpdateRequest
from src.clinic_admin.infra.db.session import get_db
from src.clinic_admin.infra.db.store import Store, StoreScope
from src.clinic_admin.security import AuthContext, get_auth_context, get_service_store, require_roles
from src.clinic_admin.services.audit.service import audit_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects
from src.clinic_admin.services.users.service import user_service

router = APIRouter(tags=["users"])

require_system_admin = require_roles(UserRole.SYSTEM_ADMIN)


@router.get("/users/me", response_model=User)
async def get_current_user(
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_service_store),
) -> User:
    return User.model_validate(user_service.get_user(store, context.user_id))


@router.get("/users", response_model=List[User])
async def list_users(
    context: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
    session: Session = Depends(get_db),
) -> List[User]:
    # System Admins see every clinic; Admins only their own.
    if context.is_system_admin:
        store = Store(session, StoreScope.SERVICE)
    else:
        store = Store(session, StoreScope.CALLER, context.tenant)
    return [User.model_validate(user) for user in user_service.list_users(store)]


@router.get("/roles", response_model=List[Role])
async def list_roles(
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_service_store),
) -> List[Role]:
    return [Role.model_validate(role) for role in user_service.list_roles(store)]


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> User:
    user = user_service.create_user(store, payload)
    audit_service.log_event(
        side_effects,
        event_type="user_management",
        event_action="create",
        resource_type="user",
        resource_id=user.id,
        user_id=context.user_id,
        auth_user_id=context.identity.id,
        severity="medium",
    )
    return User.model_validate(user)


@router.put("/users/{user_id}", response_model=User)
async def update_user(
    user_id: UUID,
    payload: UserUpdateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> User:
    return User.model_validate(user_service.update_user(store, user_id, payload))


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: UUID,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> dict:
    user_service.delete_user(store, user_id, context.user_id, side_effects)
    audit_service.log_event(
        side_effects,
        event_type="user_management",
        event_action="delete",
        resource_type="user",
        resource_id=user_id,
        user_id=context.user_id,
        auth_user_id=context.identity.id,
        severity="high",
    )
    return {"success": True, "message": "User deleted successfully"}
