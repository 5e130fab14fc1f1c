"""Local stand-in for the managed auth provider.

Identities live in ``auth_identities`` and are only reachable through a
service-scoped store. Bearer tokens are HS256 JWTs signed with
``AUTH_JWT_SECRET``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from src.clinic_admin.config import settings
from src.clinic_admin.errors import AuthenticationError, ConflictError
from src.clinic_admin.infra.db.models import AuthIdentityORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as known to the auth provider."""

    id: UUID
    email: str


class IdentityProvider:
    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        audience: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self.secret = secret or settings.auth_jwt_secret
        self.algorithm = algorithm or settings.auth_jwt_algorithm
        self.audience = audience or settings.auth_jwt_audience
        self.ttl_seconds = ttl_seconds or settings.auth_token_ttl_seconds

    # Tokens

    def issue_token(self, identity: Identity) -> Tuple[str, int]:
        now = utcnow()
        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "aud": self.audience,
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm), self.ttl_seconds

    def decode_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm], audience=self.audience)
        except jwt.PyJWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            raise AuthenticationError() from exc

    def verify_token(self, store: Store, token: str) -> Identity:
        """Resolve a bearer token to a live identity or raise 401."""

        claims = self.decode_token(token)
        try:
            identity_id = UUID(str(claims.get("sub")))
        except ValueError as exc:
            raise AuthenticationError() from exc

        row = store.session.get(AuthIdentityORM, identity_id)
        if row is None:
            raise AuthenticationError()
        return Identity(id=row.id, email=row.email)

    # Admin operations

    def create_identity(self, store: Store, email: str, password: str) -> Identity:
        row = AuthIdentityORM(email=email.lower(), password_hash=pwd_context.hash(password))
        try:
            store.add(row)
        except IntegrityError as exc:
            raise ConflictError(
                "Failed to create auth user", details="A user with this email address has already been registered"
            ) from exc
        return Identity(id=row.id, email=row.email)

    def delete_identity(self, store: Store, identity_id: UUID) -> bool:
        row = store.session.get(AuthIdentityORM, identity_id)
        if row is None:
            return False
        store.delete(row)
        return True

    def get_identity(self, store: Store, identity_id: UUID) -> Optional[Identity]:
        row = store.session.get(AuthIdentityORM, identity_id)
        return Identity(id=row.id, email=row.email) if row is not None else None

    def authenticate(self, store: Store, email: str, password: str) -> Identity:
        row = store.first(store.select(AuthIdentityORM).where(AuthIdentityORM.email == email.lower()))
        if row is None or not pwd_context.verify(password, row.password_hash):
            raise AuthenticationError("Invalid login credentials")
        row.last_sign_in_at = utcnow()
        store.save(row)
        return Identity(id=row.id, email=row.email)


identity_provider = IdentityProvider()
