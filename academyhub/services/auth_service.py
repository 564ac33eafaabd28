"""Authentication service for login and password reset."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.errors import (
    BadRequestError,
    ExpiredError,
    ForbiddenError,
    InvalidTokenError,
    MailDeliveryFailedError,
    UnauthorizedError,
)
from academyhub.core.security import (
    PasswordValidationError,
    TokenExpiredError,
    TokenInvalidError,
    create_access_token,
    create_reset_token,
    hash_password,
    validate_password,
    verify_password,
    verify_reset_token,
)
from academyhub.core.structured_logging import log_json
from academyhub.models.enums import AuditAction
from academyhub.models.user import User
from academyhub.services.audit_service import AuditService
from academyhub.services.invitation_mailer import compose_password_reset_email
from academyhub.services.mail_service import MailDeliveryError, MailDispatcher

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a password reset link has been sent."


class AuthService:
    """Service for authentication and credential recovery."""

    def __init__(self, db: AsyncSession, mailer: MailDispatcher | None = None):
        """Initialize auth service.

        Args:
            db: Database session
            mailer: Transport for password reset emails
        """
        self.db = db
        self.mailer = mailer
        self.audit_service = AuditService(db)

    async def login(
        self, email: str, password: str, ip_address: str | None = None
    ) -> tuple[str, User]:
        """Authenticate user and issue an access token.

        Args:
            email: User email address
            password: User password
            ip_address: Client IP address for audit logging

        Returns:
            Tuple of (access_token, user)

        Raises:
            UnauthorizedError: If credentials are invalid
            ForbiddenError: If account is inactive
        """
        user = await self._get_user_by_email(email)

        # Same message for unknown email and wrong password
        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            log_json(logger, logging.WARNING, "login_failed", email=email.strip().lower())
            raise UnauthorizedError("Invalid email or password.")

        if not user.is_active:
            raise ForbiddenError("Account is inactive.")

        user.last_login_at = datetime.now(UTC)
        await self.db.flush()

        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
        }
        access_token = create_access_token(token_data)

        await self.audit_service.log(
            action=AuditAction.USER_LOGIN,
            entity_type="user",
            entity_id=user.id,
            actor_id=user.id,
            ip_address=ip_address,
        )

        return access_token, user

    async def request_password_reset(self, email: str, ip_address: str | None = None) -> str:
        """Mail a password reset link if the account exists.

        The returned message is identical whether or not the email is known.

        Raises:
            MailDeliveryFailedError: If the reset email cannot be sent
        """
        user = await self._get_user_by_email(email)
        if user is None or not user.is_active:
            log_json(logger, logging.INFO, "password_reset_unknown_email", email=email.strip().lower())
            return RESET_REQUESTED_MESSAGE

        token = create_reset_token(user.id)
        recipient_name = user.profile.full_name if user.profile else user.email
        message = compose_password_reset_email(recipient_name, token)
        try:
            await self.mailer.send(user.email, message.subject, message.text, message.html)
        except MailDeliveryError as e:
            raise MailDeliveryFailedError("Failed to send password reset email.") from e

        log_json(logger, logging.INFO, "password_reset_requested", user_id=str(user.id), ip_address=ip_address)
        return RESET_REQUESTED_MESSAGE

    async def reset_password(self, token: str, new_password: str, ip_address: str | None = None) -> User:
        """Set a new password using a reset token.

        Raises:
            ExpiredError: Reset link expired
            InvalidTokenError: Token malformed or not a reset token, or its
                user no longer exists
            BadRequestError: Password too weak
        """
        try:
            claims = verify_reset_token(token)
        except TokenExpiredError as e:
            raise ExpiredError("Password reset link has expired.") from e
        except TokenInvalidError as e:
            raise InvalidTokenError("Invalid password reset token.") from e

        try:
            user_id = UUID(str(claims["sub"]))
        except ValueError as e:
            raise InvalidTokenError("Invalid password reset token.") from e

        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise InvalidTokenError("Invalid password reset token.")

        try:
            validate_password(new_password)
        except PasswordValidationError as e:
            raise BadRequestError(str(e), details={"password": str(e)}) from e

        user.password_hash = hash_password(new_password)
        user.has_password = True
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.USER_PASSWORD_RESET,
            entity_type="user",
            entity_id=user.id,
            actor_id=user.id,
            ip_address=ip_address,
        )
        log_json(logger, logging.INFO, "password_reset_completed", user_id=str(user.id))
        return user

    async def _get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()
