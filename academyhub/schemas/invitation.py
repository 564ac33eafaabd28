"""Pydantic schemas for invitation endpoints and stored invitation payloads."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from academyhub.models.enums import InvitationStatus, InvitationType


class InvitationPayload(BaseModel):
    """Common part of the JSON stored in ``Invitation.data``.

    Keys are camelCase on the wire and in storage.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="firstName", min_length=1)
    last_name: str = Field(..., alias="lastName", min_length=1)
    email: EmailStr
    password: str = Field(..., description="bcrypt hash of the temporary password")

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AcademyAdminPayload(InvitationPayload):
    academy_name: str = Field(..., alias="academyName", min_length=1)


class BatchCoachPayload(InvitationPayload):
    batch_id: UUID = Field(..., alias="batchId")
    sub_role: str | None = Field(None, alias="subRole")


class BatchStudentPayload(InvitationPayload):
    batch_id: UUID = Field(..., alias="batchId")


PAYLOAD_MODELS: dict[InvitationType, type[InvitationPayload]] = {
    InvitationType.CREATE_ACADEMY: AcademyAdminPayload,
    InvitationType.BATCH_COACH: BatchCoachPayload,
    InvitationType.BATCH_STUDENT: BatchStudentPayload,
}


class InviteRequest(BaseModel):
    """Request schema for creating an invitation.

    Used for POST /invitations. ``academy_name`` is required for
    CREATE_ACADEMY, ``batch_id`` for BATCH_COACH and BATCH_STUDENT.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: InvitationType = Field(..., description="What accepting the invitation provisions")
    email: EmailStr = Field(..., description="Email address of the person to invite")
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    academy_name: str | None = Field(None, alias="academyName", min_length=1, max_length=255)
    batch_id: UUID | None = Field(None, alias="batchId")
    sub_role: str | None = Field(None, alias="subRole", max_length=100)

    @model_validator(mode="after")
    def _check_target(self) -> "InviteRequest":
        if self.type is InvitationType.CREATE_ACADEMY and not self.academy_name:
            raise ValueError("academyName is required for CREATE_ACADEMY invitations")
        if self.type is not InvitationType.CREATE_ACADEMY and self.batch_id is None:
            raise ValueError(f"batchId is required for {self.type.value} invitations")
        return self


class EditInvitationRequest(BaseModel):
    """Request schema for PATCH /invitations/{id}."""

    email: EmailStr = Field(..., description="New recipient email address")


class InvitationResponse(BaseModel):
    """Invitation as returned to its creator.

    The stored password hash is never included.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: InvitationType
    email: str
    status: InvitationStatus
    version: int
    first_name: str | None = None
    last_name: str | None = None
    academy_name: str | None = None
    batch_id: UUID | None = None
    sub_role: str | None = None
    expires_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_invitation(cls, invitation: Any) -> "InvitationResponse":
        data = invitation.data or {}
        return cls(
            id=invitation.id,
            type=invitation.type,
            email=invitation.email,
            status=invitation.status,
            version=invitation.version,
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            academy_name=data.get("academyName"),
            batch_id=data.get("batchId"),
            sub_role=data.get("subRole"),
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
        )


class InvitationListResponse(BaseModel):
    items: list[InvitationResponse]
    total: int
    page: int
    limit: int


class AcceptInviteRequest(BaseModel):
    """Request schema for POST /invitations/accept."""

    token: str = Field(..., min_length=1, description="Invitation token from the activation link")


class AcceptInviteResponse(BaseModel):
    """The identity provisioned by an accepted invitation."""

    user_id: UUID
    email: str
    role: str
    code: str | None
    academy_id: UUID | None = None
    academy_name: str | None = None
    batch_id: UUID | None = None
    batch_code: str | None = None
