"""SQLAlchemy models."""

from academyhub.models.academy import Academy
from academyhub.models.associations import academy_admins, batch_coaches, batch_students
from academyhub.models.audit_event import AuditEvent
from academyhub.models.base import Base, BaseModel
from academyhub.models.batch import Batch
from academyhub.models.enums import (
    AcademyStatus,
    AuditAction,
    InvitationStatus,
    InvitationType,
    UserRole,
)
from academyhub.models.invitation import Invitation
from academyhub.models.profile import Profile
from academyhub.models.user import User

__all__ = [
    "Base",
    "BaseModel",
    "UserRole",
    "InvitationType",
    "InvitationStatus",
    "AcademyStatus",
    "AuditAction",
    "Academy",
    "Batch",
    "User",
    "Profile",
    "Invitation",
    "AuditEvent",
    "academy_admins",
    "batch_coaches",
    "batch_students",
]
