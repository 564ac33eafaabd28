"""Invitation endpoints: create, list, view, edit, delete, accept."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import get_client_ip, require_roles
from academyhub.core.database import get_db
from academyhub.core.relay import RealtimeRelay, get_relay
from academyhub.models.enums import InvitationType, UserRole
from academyhub.models.user import User
from academyhub.schemas.invitation import (
    AcceptInviteRequest,
    AcceptInviteResponse,
    EditInvitationRequest,
    InvitationListResponse,
    InvitationResponse,
    InviteRequest,
)
from academyhub.services.invitation_service import InvitationService
from academyhub.services.mail_service import MailDispatcher, get_mailer

router = APIRouter()

INVITER_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.COACH)


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    invite_data: InviteRequest,
    request: Request,
    current_user: User = Depends(require_roles(*INVITER_ROLES)),
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    """Create an invitation and email its activation link.

    Super admins invite academy admins (CREATE_ACADEMY); academy admins
    invite coaches to their batches; coaches invite students to theirs.

    Raises:
        ForbiddenError: 403 if the requester may not invite to the target
        NotFoundError: 404 if the batch does not exist
        ConflictError: 409 if the email is already invited or registered
        MailDeliveryFailedError: 500 if the email could not be sent
    """
    service = InvitationService(db, mailer)
    invitation, _token = await service.create_invitation(
        invitation_type=invite_data.type,
        invited_by_user=current_user,
        email=invite_data.email,
        first_name=invite_data.first_name,
        last_name=invite_data.last_name,
        academy_name=invite_data.academy_name,
        batch_id=invite_data.batch_id,
        sub_role=invite_data.sub_role,
        ip_address=get_client_ip(request),
    )

    await db.commit()

    return InvitationResponse.from_invitation(invitation)


@router.get("", response_model=InvitationListResponse)
async def list_invitations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: InvitationType | None = Query(None),
    query: str | None = Query(None, max_length=255),
    current_user: User = Depends(require_roles(*INVITER_ROLES)),
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    """List invitations created by the current user."""
    service = InvitationService(db, mailer)
    invitations, total = await service.list_invitations(
        current_user, page=page, limit=limit, invitation_type=type, query=query
    )
    return InvitationListResponse(
        items=[InvitationResponse.from_invitation(i) for i in invitations],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/accept", response_model=AcceptInviteResponse, status_code=status.HTTP_201_CREATED)
async def accept_invitation(
    accept_data: AcceptInviteRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
    relay: RealtimeRelay = Depends(get_relay),
):
    """Accept an invitation. Does not require authentication.

    Creates the user (with the temporary password from the email), its
    profile and its academy or batch membership, and consumes the
    invitation.

    Raises:
        InvalidTokenError: 400 if the token is malformed
        NotFoundError: 404 if the invitation was already used or deleted
        ConflictError: 409 if already accepted, email taken or batch full
        VersionMismatchError: 409 if the invitation was edited after this link was sent
        ExpiredError: 410 if the invitation has expired
    """
    service = InvitationService(db, mailer, relay=relay)
    identity = await service.accept_invitation(accept_data.token, ip_address=get_client_ip(request))

    await db.commit()

    # Notify only once the new user is committed
    await service.notify_accepted(identity)

    return AcceptInviteResponse(
        user_id=identity.user.id,
        email=identity.user.email,
        role=identity.user.role.value,
        code=identity.user.code,
        academy_id=identity.academy.id if identity.academy else None,
        academy_name=identity.academy.name if identity.academy else None,
        batch_id=identity.batch.id if identity.batch else None,
        batch_code=identity.batch.batch_code if identity.batch else None,
    )


@router.get("/{invitation_id}", response_model=InvitationResponse)
async def get_invitation(
    invitation_id: UUID,
    current_user: User = Depends(require_roles(*INVITER_ROLES)),
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    service = InvitationService(db, mailer)
    invitation = await service.get_invitation(invitation_id, current_user)
    return InvitationResponse.from_invitation(invitation)


@router.patch("/{invitation_id}", response_model=InvitationResponse)
async def edit_invitation(
    invitation_id: UUID,
    edit_data: EditInvitationRequest,
    request: Request,
    current_user: User = Depends(require_roles(*INVITER_ROLES)),
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    """Change the recipient email and re-send with fresh credentials.

    Links from earlier emails stop working.

    Raises:
        ForbiddenError: 403 if the current user did not create the invitation
        ConflictError: 409 if already accepted or the new email is taken
        ExpiredError: 410 if the invitation has expired
    """
    service = InvitationService(db, mailer)
    invitation, _token = await service.edit_invitation(
        invitation_id, current_user, edit_data.email, ip_address=get_client_ip(request)
    )

    await db.commit()

    return InvitationResponse.from_invitation(invitation)


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invitation(
    invitation_id: UUID,
    request: Request,
    current_user: User = Depends(require_roles(*INVITER_ROLES)),
    db: AsyncSession = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    service = InvitationService(db, mailer)
    await service.delete_invitation(invitation_id, current_user, ip_address=get_client_ip(request))
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
