"""Bootstrap endpoint for the first super admin."""
import hmac

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import get_client_ip
from academyhub.core.config import get_settings
from academyhub.core.database import get_db
from academyhub.core.errors import ForbiddenError, NotFoundError
from academyhub.schemas.auth import BootstrapRequest, UserResponse
from academyhub.services.bootstrap_service import BootstrapService

router = APIRouter()


@router.post(
    "/bootstrap",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the first super admin (bootstrap only)",
    tags=["bootstrap"],
)
async def bootstrap(
    payload: BootstrapRequest,
    request: Request,
    x_bootstrap_token: str | None = Header(default=None, alias="X-Bootstrap-Token"),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Create the first super admin.

    Disabled unless ``BOOTSTRAP_TOKEN`` is configured; the request must carry
    it in ``X-Bootstrap-Token``.

    Raises:
        NotFoundError: 404 if bootstrap is disabled
        ForbiddenError: 403 if the token is missing or wrong
        ConflictError: 409 if a super admin already exists
    """
    expected = get_settings().bootstrap_token
    if not expected:
        raise NotFoundError("Not found")
    if not x_bootstrap_token or not hmac.compare_digest(x_bootstrap_token, expected):
        raise ForbiddenError("Invalid bootstrap token")

    user = await BootstrapService(db).create_super_admin(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        ip_address=get_client_ip(request),
    )
    await db.commit()
    return UserResponse.from_user(user)
