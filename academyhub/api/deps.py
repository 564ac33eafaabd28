"""FastAPI dependencies for authentication and authorization."""
from collections.abc import Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.database import get_db
from academyhub.core.errors import ForbiddenError, UnauthorizedError
from academyhub.core.request_context import set_actor_id
from academyhub.core.security import decode_token
from academyhub.models.enums import UserRole
from academyhub.models.user import User

# HTTP Bearer token security scheme
security = HTTPBearer()


async def resolve_user_from_token(token: str, db: AsyncSession) -> User | None:
    """Return the active user an access token belongs to, or None."""
    payload = decode_token(token)
    if not payload:
        return None
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials from request
        db: Database session

    Returns:
        Authenticated User instance

    Raises:
        UnauthorizedError: 401 if token is invalid or user not found
        ForbiddenError: 403 if account is inactive
    """
    payload = decode_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError as e:
        raise UnauthorizedError("Invalid token payload") from e

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found")

    if not user.is_active:
        raise ForbiddenError("Account is inactive")

    set_actor_id(str(user.id))
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory for role-based access control.

    Args:
        roles: Roles allowed to access the endpoint

    Returns:
        FastAPI dependency function

    Example:
        @router.post("/batches")
        async def create_batch(
            user: User = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN))
        ):
            pass
    """
    allowed = set(roles)

    async def check_role(
        current_user: User = Depends(get_current_user),
    ) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError(
                "Insufficient permissions. Requires one of: "
                + ", ".join(sorted(r.value for r in allowed))
            )
        return current_user

    return check_role


def get_client_ip(request: Request) -> str | None:
    """Extract client IP address from request.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address or None
    """
    # Try to get real IP from X-Forwarded-For header (if behind proxy)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None
