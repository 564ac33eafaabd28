"""User directory endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import get_current_user, require_roles
from academyhub.core.database import get_db
from academyhub.models.enums import UserRole
from academyhub.models.user import User
from academyhub.schemas.auth import UserListResponse, UserResponse
from academyhub.services.batch_service import BatchService

router = APIRouter()


@router.get("/users", response_model=UserListResponse, tags=["users"])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: UserRole | None = Query(None),
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.COACH)),
    db: AsyncSession = Depends(get_db),
):
    """List users the current user may see.

    Admins see the members of their academies, coaches the members of their
    batches.
    """
    users, total = await BatchService(db).list_users(current_user, page=page, limit=limit, role=role)
    return UserListResponse(
        items=[UserResponse.from_user(u) for u in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/me", response_model=UserResponse, tags=["auth"])
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return UserResponse.from_user(current_user)
