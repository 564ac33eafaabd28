"""Academy model."""
from sqlalchemy import CheckConstraint, Column, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from academyhub.models.associations import academy_admins
from academyhub.models.base import BaseModel
from academyhub.models.enums import AcademyStatus


class Academy(BaseModel):
    """Academy entity: the tenant that owns batches and has admin users."""

    __tablename__ = "academies"

    name = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )
    status = Column(
        SQLEnum(AcademyStatus, name="academy_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=AcademyStatus.ACTIVE
    )

    # Relationships
    admins = relationship(
        "User",
        secondary=academy_admins,
        back_populates="admin_of_academies"
    )
    batches = relationship(
        "Batch",
        back_populates="academy",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "LENGTH(name) > 0",
            name="academy_name_not_empty"
        ),
    )

    def __repr__(self) -> str:
        return f"<Academy(id={self.id}, name={self.name})>"
