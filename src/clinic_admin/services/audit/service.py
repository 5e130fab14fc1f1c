from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from src.clinic_admin.infra.db.models import AuditLogORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue
from src.clinic_admin.tenancy import get_current_tenant
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger("audit")

SEVERITIES = ("low", "medium", "high", "critical")


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Keep ``metadata`` to identifiers, counts and flags; never raw PHI such as
    note content or form responses.
    """

    timestamp: str
    event_type: str
    event_action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    clinic_id: Optional[str] = None
    user_id: Optional[str] = None
    auth_user_id: Optional[str] = None
    phi_accessed: bool = False
    severity: str = "low"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


def coerce_resource_id(value: Any) -> Optional[UUID]:
    """Return ``value`` as a UUID, or None when it is not one."""

    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


class AuditService:
    def build_event(
        self,
        *,
        event_type: str,
        event_action: str,
        resource_type: Optional[str] = None,
        resource_id: Any = None,
        clinic_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        auth_user_id: Optional[UUID] = None,
        phi_accessed: bool = False,
        severity: str = "low",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        if clinic_id is None:
            tenant = get_current_tenant()
            clinic_id = tenant.clinic_id if tenant is not None else None
        return AuditEvent(
            timestamp=utcnow().isoformat(),
            event_type=event_type,
            event_action=event_action,
            resource_type=resource_type,
            resource_id=_str(coerce_resource_id(resource_id)),
            clinic_id=_str(clinic_id),
            user_id=_str(user_id),
            auth_user_id=_str(auth_user_id),
            phi_accessed=phi_accessed,
            severity=severity if severity in SEVERITIES else "low",
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
            metadata=metadata or {},
        )

    def emit_log(self, event: AuditEvent) -> None:
        """Write the event as one JSON line on the ``audit`` logger."""

        try:
            logger.info(json.dumps(asdict(event)))
        except TypeError:
            # Metadata that is not JSON serializable is dropped from the log line.
            safe_event = asdict(event)
            safe_event["metadata"] = None
            logger.info(json.dumps(safe_event))

    def persist(self, store: Store, event: AuditEvent) -> AuditLogORM:
        row = AuditLogORM(
            clinic_id=coerce_resource_id(event.clinic_id),
            user_id=coerce_resource_id(event.user_id),
            auth_user_id=coerce_resource_id(event.auth_user_id),
            event_type=event.event_type,
            event_action=event.event_action,
            resource_type=event.resource_type,
            resource_id=coerce_resource_id(event.resource_id),
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            request_metadata=event.metadata or {},
            phi_accessed=event.phi_accessed,
            severity=event.severity,
            session_id=event.session_id,
        )
        return store.add(row)

    def record(self, store: Store, **kwargs: Any) -> AuditLogORM:
        """Log and persist an event as the primary write of a request."""

        event = self.build_event(**kwargs)
        self.emit_log(event)
        return self.persist(store, event)

    def log_event(self, side_effects: Optional[SideEffectQueue] = None, **kwargs: Any) -> AuditEvent:
        """Log an event and queue its persistence as a secondary write.

        Without a queue only the log line is written.
        """

        event = self.build_event(**kwargs)
        self.emit_log(event)
        if side_effects is not None:
            side_effects.emit("audit_log", self.persist, event)
        return event

    def list_events(self, store: Store, clinic_id: Optional[UUID], event_type: Optional[str] = None, limit: int = 100) -> List[AuditLogORM]:
        stmt = store.select(AuditLogORM)
        if clinic_id is not None:
            stmt = stmt.where(AuditLogORM.clinic_id == clinic_id)
        if event_type:
            stmt = stmt.where(AuditLogORM.event_type == event_type)
        return store.scalars(stmt.order_by(AuditLogORM.timestamp.desc()).limit(limit))


audit_service = AuditService()
