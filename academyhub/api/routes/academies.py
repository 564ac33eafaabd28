"""Academy and batch endpoints."""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import get_client_ip, get_current_user, require_roles
from academyhub.core.database import get_db
from academyhub.models.enums import UserRole
from academyhub.models.user import User
from academyhub.schemas.academy import (
    AcademyListResponse,
    AcademyResponse,
    BatchListResponse,
    BatchResponse,
    CreateBatchRequest,
)
from academyhub.services.batch_service import BatchService

router = APIRouter()


@router.get("/academies", response_model=AcademyListResponse, tags=["academies"])
async def list_academies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List academies visible to the current user."""
    academies, total = await BatchService(db).list_academies(current_user, page=page, limit=limit)
    return AcademyListResponse(
        items=[AcademyResponse.model_validate(a) for a in academies],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/batches", response_model=BatchListResponse, tags=["batches"])
async def list_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List batches visible to the current user."""
    batches, total = await BatchService(db).list_batches(current_user, page=page, limit=limit)
    return BatchListResponse(
        items=[BatchResponse.model_validate(b) for b in batches],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/batches", response_model=BatchResponse, status_code=status.HTTP_201_CREATED, tags=["batches"])
async def create_batch(
    batch_data: CreateBatchRequest,
    request: Request,
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a batch in an academy.

    Raises:
        ForbiddenError: 403 if an admin targets an academy they do not administer
        NotFoundError: 404 if the academy does not exist
    """
    batch = await BatchService(db).create_batch(
        requester=current_user,
        academy_id=batch_data.academy_id,
        student_capacity=batch_data.student_capacity,
        warning_cutoff=batch_data.warning_cutoff,
        description=batch_data.description,
        ip_address=get_client_ip(request),
    )
    await db.commit()
    return BatchResponse.model_validate(batch)
