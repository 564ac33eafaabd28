"""Invitation model."""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from academyhub.models.base import BaseModel
from academyhub.models.enums import InvitationStatus, InvitationType


class Invitation(BaseModel):
    """A pending offer to create a user bound to an academy or batch.

    ``data`` holds the type-specific payload (names, ``academyName`` or
    ``batchId``, ``subRole`` and the bcrypt hash of the temporary password).
    Accepting the invitation deletes the row; ``version`` is bumped by every
    edit so links minted before the edit stop working.
    """

    __tablename__ = "invitations"

    type = Column(
        SQLEnum(InvitationType, name="invitation_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    email = Column(
        String(255),
        nullable=False,
        index=True
    )
    data = Column(
        JSON,
        nullable=False,
        default=dict
    )
    status = Column(
        SQLEnum(InvitationStatus, name="invitation_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=InvitationStatus.PENDING
    )
    version = Column(
        Integer,
        nullable=False,
        default=1
    )
    expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        index=True
    )
    created_by_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Relationships
    created_by = relationship(
        "User",
        back_populates="invitations_sent",
        foreign_keys=[created_by_id]
    )

    __table_args__ = (
        # One pending invitation per email
        Index(
            "uq_invitations_pending_email",
            "email",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, type={self.type}, email={self.email}, version={self.version})>"
