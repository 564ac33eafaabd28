"""Authentication endpoints: login and password reset."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import get_client_ip
from academyhub.core.config import get_settings
from academyhub.core.database import get_db
from academyhub.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    TokenResponse,
)
from academyhub.services.auth_service import AuthService
from academyhub.services.mail_service import MailDispatcher, get_mailer

settings = get_settings()
router = APIRouter()


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """User login endpoint.

    Authenticates user with email and password and returns an access token.

    Raises:
        UnauthorizedError: 401 if credentials are invalid
        ForbiddenError: 403 if account is inactive
    """
    auth_service = AuthService(db)
    access_token, _user = await auth_service.login(
        email=login_data.email, password=login_data.password, ip_address=get_client_ip(request)
    )

    await db.commit()

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    """Send a password reset link. The response does not reveal whether the email exists."""
    auth_service = AuthService(db, mailer)
    message = await auth_service.request_password_reset(payload.email, ip_address=get_client_ip(request))
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Set a new password using the token from the reset email.

    Raises:
        InvalidTokenError: 400 if the token is invalid
        ExpiredError: 410 if the link has expired
        BadRequestError: 400 if the password is too weak
    """
    auth_service = AuthService(db)
    await auth_service.reset_password(payload.token, payload.password, ip_address=get_client_ip(request))
    await db.commit()
    return MessageResponse(message="Password has been reset.")
