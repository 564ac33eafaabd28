"""Enumerations for roles, invitations and audit actions."""

from enum import Enum


class UserRole(str, Enum):
    """User role enumeration.

    The single source of role names; route guards and services compare
    against these members only.
    """

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    COACH = "COACH"
    STUDENT = "STUDENT"
    SUBSCRIBER = "SUBSCRIBER"


class InvitationType(str, Enum):
    """What accepting the invitation provisions."""

    CREATE_ACADEMY = "CREATE_ACADEMY"  # new ADMIN user + new academy
    BATCH_COACH = "BATCH_COACH"  # new COACH user attached to a batch
    BATCH_STUDENT = "BATCH_STUDENT"  # new STUDENT user attached to a batch

    @property
    def provisioned_role(self) -> UserRole:
        return {
            InvitationType.CREATE_ACADEMY: UserRole.ADMIN,
            InvitationType.BATCH_COACH: UserRole.COACH,
            InvitationType.BATCH_STUDENT: UserRole.STUDENT,
        }[self]


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class AcademyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AuditAction(str, Enum):
    """Audit action enumeration for tracking administrative actions."""

    # User
    USER_CREATE = "user.create"
    USER_LOGIN = "user.login"
    USER_PASSWORD_RESET = "user.password_reset"

    # Invitation
    INVITATION_CREATE = "invitation.create"
    INVITATION_UPDATE = "invitation.update"
    INVITATION_ACCEPT = "invitation.accept"
    INVITATION_DELETE = "invitation.delete"
    INVITATION_EXPIRE = "invitation.expire"

    # Academy / batch
    ACADEMY_CREATE = "academy.create"
    BATCH_CREATE = "batch.create"
