"""Audit trail for invitation, provisioning and account actions."""
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.structured_logging import log_json
from academyhub.models.audit_event import AuditEvent
from academyhub.models.enums import AuditAction

logger = logging.getLogger(__name__)

# Never persisted in an audit diff, at any nesting level
REDACTED_KEYS = frozenset({"password", "password_hash", "token", "temporary_password"})


def redact(value: Any) -> Any:
    """Drop credential-bearing keys from a diff."""
    if isinstance(value, dict):
        return {k: redact(v) for k, v in value.items() if k not in REDACTED_KEYS}
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


class AuditService:
    """Service for creating audit trail entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        actor_id: Optional[UUID] = None,
        diff_json: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditEvent:
        """Create an audit log entry.

        Written in the caller's transaction, so an entry only survives if
        the action it records is committed. The entry is also mirrored to
        the JSON log.

        Args:
            action: Action being performed
            entity_type: Type of entity being acted upon
            entity_id: ID of entity being acted upon
            actor_id: ID of user performing action (None for anonymous actions)
            diff_json: Details of the change; credentials are stripped
            ip_address: Client IP address

        Returns:
            Created AuditEvent instance
        """
        audit_event = AuditEvent(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_json=redact(diff_json) if diff_json is not None else None,
            ip_address=ip_address,
        )
        self.db.add(audit_event)
        await self.db.flush()

        log_json(
            logger,
            logging.INFO,
            "audit_event",
            action=action.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
        )
        return audit_event
