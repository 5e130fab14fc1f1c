from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from src.clinic_admin.domain.models.user import UserCreateRequest, UserUpdateRequest
from src.clinic_admin.errors import NotFoundError, StoreError, ValidationError
from src.clinic_admin.infra.auth.provider import identity_provider
from src.clinic_admin.infra.db.models import RoleORM, UserORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue

logger = logging.getLogger(__name__)

_REQUIRED_CREATE_FIELDS = ("email", "full_name", "role_id", "clinic_id", "password")


class UserService:
    def get_user(self, store: Store, user_id: UUID) -> UserORM:
        user = store.get(UserORM, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_users(self, store: Store) -> List[UserORM]:
        return store.scalars(store.select(UserORM).order_by(UserORM.full_name))

    def list_roles(self, store: Store) -> List[RoleORM]:
        return store.scalars(store.select(RoleORM).order_by(RoleORM.name))

    def create_user(self, store: Store, payload: UserCreateRequest) -> UserORM:
        """Provision an auth identity, then the profile that points at it.

        The two writes are not atomic. If the profile insert fails the
        identity is deleted again so no login exists without a profile; a
        failure of that cleanup is only logged and the profile error is
        reported.
        """

        missing = [name for name in _REQUIRED_CREATE_FIELDS if not getattr(payload, name)]
        if missing:
            raise ValidationError("Missing required fields", details=", ".join(missing))

        identity = identity_provider.create_identity(store, payload.email, payload.password)

        try:
            user = store.add(
                UserORM(
                    auth_user_id=identity.id,
                    email=identity.email,
                    full_name=payload.full_name,
                    role_id=payload.role_id,
                    clinic_id=payload.clinic_id,
                    is_active=True,
                )
            )
        except SQLAlchemyError as exc:
            logger.error("Profile creation failed for identity %s, rolling back identity", identity.id)
            try:
                identity_provider.delete_identity(store, identity.id)
            except Exception:
                logger.exception("Failed to delete orphaned auth identity %s", identity.id)
            raise StoreError("Failed to create user", details=str(getattr(exc, "orig", None) or exc)) from exc

        logger.info("Created user %s in clinic %s", user.id, user.clinic_id)
        return store.get(UserORM, user.id) or user

    def update_user(self, store: Store, user_id: UUID, payload: UserUpdateRequest) -> UserORM:
        user = self.get_user(store, user_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update")
        for field, value in changes.items():
            setattr(user, field, value)
        store.save(user)
        # Reload so role and clinic relationships reflect new foreign keys.
        store.session.expire(user)
        return self.get_user(store, user_id)

    def delete_user(
        self,
        store: Store,
        user_id: UUID,
        acting_user_id: UUID,
        side_effects: Optional[SideEffectQueue] = None,
    ) -> UserORM:
        """Hard-delete a profile; its auth identity is removed afterwards."""

        if user_id == acting_user_id:
            raise ValidationError("Cannot delete your own account")
        user = self.get_user(store, user_id)
        auth_user_id = user.auth_user_id
        store.delete(user)
        if auth_user_id is not None and side_effects is not None:
            side_effects.emit("delete_identity", identity_provider.delete_identity, auth_user_id)
        logger.info("Deleted user %s", user_id)
        return user


user_service = UserService()
