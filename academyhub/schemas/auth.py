"""Pydantic schemas for authentication and bootstrap endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Request schema for user login.

    Used for POST /auth/login endpoint.
    """

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenResponse(BaseModel):
    """Response schema for POST /auth/login."""

    access_token: str = Field(..., description="JWT access token for API authentication")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int | None = Field(default=None, description="Seconds until access token expires")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email address")


class ResetPasswordRequest(BaseModel):
    """Request schema for POST /auth/reset-password."""

    token: str = Field(..., min_length=1, description="Reset token from the emailed link")
    password: str = Field(..., min_length=8, description="New password")


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    """Response schema for user information.

    Used for GET /me and GET /users.
    """

    id: UUID = Field(..., description="User unique identifier")
    email: str = Field(..., description="User email address")
    role: str = Field(..., description="User role (SUPER_ADMIN, ADMIN, COACH, STUDENT, SUBSCRIBER)")
    sub_role: str | None = Field(None, description="Coach sub-role, if any")
    code: str | None = Field(None, description="Sequential user code, e.g. C03")
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool = Field(..., description="Whether user account is active")
    last_login_at: datetime | None = Field(None, description="Last login timestamp")
    created_at: datetime = Field(..., description="Account creation timestamp")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        profile = user.profile
        return cls(
            id=user.id,
            email=user.email,
            role=user.role.value,
            sub_role=user.sub_role,
            code=user.code,
            first_name=profile.first_name if profile else None,
            last_name=profile.last_name if profile else None,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    limit: int


class BootstrapRequest(BaseModel):
    """Request schema for POST /bootstrap (first super admin)."""

    email: EmailStr = Field(..., description="Super admin email address")
    password: str = Field(..., min_length=8, description="Super admin password")
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)

    model_config = ConfigDict(populate_by_name=True)
