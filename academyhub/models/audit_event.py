"""AuditEvent model."""

from sqlalchemy import JSON, Column, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from academyhub.models.base import BaseModel
from academyhub.models.enums import AuditAction


class AuditEvent(BaseModel):
    """Append-only audit trail for invitation and provisioning actions."""

    __tablename__ = "audit_events"

    actor_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action = Column(
        SQLEnum(
            AuditAction,
            name="audit_action",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    diff_json = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)

    actor = relationship("User")

    def __repr__(self) -> str:
        return f"<AuditEvent(id={self.id}, action={self.action}, entity_type={self.entity_type})>"
