"""User model."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from academyhub.models.associations import academy_admins, batch_coaches, batch_students
from academyhub.models.base import BaseModel
from academyhub.models.enums import UserRole


class User(BaseModel):
    """User entity: one identity, one role.

    Admins are linked to academies; coaches and students to batches. Users
    created through an invitation start with the temporary password that
    was mailed to them.
    """

    __tablename__ = "users"

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )
    password_hash = Column(
        String(255),
        nullable=True
    )
    has_password = Column(
        Boolean,
        nullable=False,
        default=False
    )
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.SUBSCRIBER
    )
    sub_role = Column(
        String(100),
        nullable=True
    )
    code = Column(
        String(20),
        nullable=True,
        unique=True
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True
    )
    last_login_at = Column(
        DateTime(timezone=True),
        nullable=True
    )
    profile_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        unique=True
    )

    # Relationships
    profile = relationship(
        "Profile",
        back_populates="user",
        cascade="all, delete-orphan",
        single_parent=True,
        lazy="selectin"
    )
    admin_of_academies = relationship(
        "Academy",
        secondary=academy_admins,
        back_populates="admins"
    )
    coach_of_batches = relationship(
        "Batch",
        secondary=batch_coaches,
        back_populates="coaches"
    )
    student_of_batches = relationship(
        "Batch",
        secondary=batch_students,
        back_populates="students"
    )
    invitations_sent = relationship(
        "Invitation",
        back_populates="created_by",
        foreign_keys="Invitation.created_by_id"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
