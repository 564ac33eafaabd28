"""Invitation lifecycle: create, edit, accept, delete.

An invitation is a pending offer to create a user bound to an academy or a
batch. Rules enforced here:

- one pending invitation per email, and never for an email that already
  belongs to a user
- the temporary password only ever exists in the outgoing email; the row
  stores its bcrypt hash
- writing the row and sending the email are all-or-nothing: if the mail
  transport fails, the row is rolled back and the caller gets an error
- every edit bumps ``version``; tokens carry the version they were minted
  for, so links sent before an edit stop working
- accepting provisions profile, user and membership and deletes the
  invitation in one savepoint; the delete is conditional on the row still
  existing at the same version, so of two concurrent acceptances exactly
  one succeeds and the other sees NOT_FOUND
"""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academyhub.core.codes import code_prefix_for, next_code
from academyhub.core.config import get_settings
from academyhub.core.database import atomic
from academyhub.core.errors import (
    BadRequestError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidTokenError,
    MailDeliveryFailedError,
    NotFoundError,
    VersionMismatchError,
)
from academyhub.core.metrics import record_invitation_event
from academyhub.core.relay import RealtimeRelay, user_room
from academyhub.core.security import (
    TokenExpiredError,
    TokenInvalidError,
    create_invitation_token,
    generate_temporary_password,
    hash_password,
    verify_invitation_token,
)
from academyhub.core.structured_logging import log_json
from academyhub.models.academy import Academy
from academyhub.models.associations import academy_admins, batch_coaches, batch_students
from academyhub.models.batch import Batch
from academyhub.models.enums import AcademyStatus, AuditAction, InvitationStatus, InvitationType, UserRole
from academyhub.models.invitation import Invitation
from academyhub.models.profile import Profile
from academyhub.models.user import User
from academyhub.schemas.invitation import (
    PAYLOAD_MODELS,
    AcademyAdminPayload,
    BatchCoachPayload,
    BatchStudentPayload,
    InvitationPayload,
)
from academyhub.services.access_service import AccessService, paginate
from academyhub.services.audit_service import AuditService
from academyhub.services.invitation_mailer import compose_invitation_email
from academyhub.services.mail_service import MailDeliveryError, MailDispatcher

logger = logging.getLogger(__name__)

# Roles allowed to create each invitation type (membership is checked separately)
INVITER_ROLES: dict[InvitationType, set[UserRole]] = {
    InvitationType.CREATE_ACADEMY: {UserRole.SUPER_ADMIN},
    InvitationType.BATCH_COACH: {UserRole.SUPER_ADMIN, UserRole.ADMIN},
    InvitationType.BATCH_STUDENT: {UserRole.SUPER_ADMIN, UserRole.COACH},
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_expired(invitation: Invitation, now: datetime | None = None) -> bool:
    """Whether the invitation is past its expiry. No expiry means never."""
    if invitation.expires_at is None:
        return False
    return _as_utc(invitation.expires_at) < (now or datetime.now(UTC))


@dataclass
class ProvisionedIdentity:
    """Result of accepting an invitation."""

    user: User
    invitation_type: InvitationType
    academy: Academy | None = None
    batch: Batch | None = None
    invitation_id: UUID | None = None
    invited_by_id: UUID | None = None


class InvitationService:
    """Service for the invitation and onboarding lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        mailer: MailDispatcher,
        relay: RealtimeRelay | None = None,
    ):
        """Initialize invitation service.

        Args:
            db: Database session
            mailer: Transport for activation emails
            relay: Optional relay used to notify inviters of acceptances
        """
        self.db = db
        self.mailer = mailer
        self.relay = relay
        self.settings = get_settings()
        self.audit_service = AuditService(db)
        self.access_service = AccessService(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_invitation(
        self,
        invitation_type: InvitationType,
        invited_by_user: User,
        email: str,
        first_name: str,
        last_name: str,
        academy_name: str | None = None,
        batch_id: UUID | None = None,
        sub_role: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[Invitation, str]:
        """Create an invitation and send its activation email.

        Args:
            invitation_type: What accepting the invitation provisions
            invited_by_user: User creating the invitation
            email: Invitee email address
            first_name: Invitee first name
            last_name: Invitee last name
            academy_name: Name of the academy to create (CREATE_ACADEMY)
            batch_id: Target batch (BATCH_COACH, BATCH_STUDENT)
            sub_role: Coach sub-role (BATCH_COACH)
            ip_address: Client IP address (for audit)

        Returns:
            Tuple of (Invitation instance, invitation token)

        Raises:
            ForbiddenError: Requester may not create this invitation
            BadRequestError: Missing academy name or batch id
            NotFoundError: Target batch does not exist
            ConflictError: Email already invited or registered, or academy
                name already taken
            MailDeliveryFailedError: Activation email could not be sent;
                nothing was persisted
        """
        if invited_by_user.role not in INVITER_ROLES[invitation_type]:
            raise ForbiddenError(
                f"{invited_by_user.role.value} users cannot create {invitation_type.value} invitations."
            )

        email = normalize_email(email)
        batch: Batch | None = None

        if invitation_type is InvitationType.CREATE_ACADEMY:
            if not academy_name:
                raise BadRequestError("academyName is required for CREATE_ACADEMY invitations.")
            academy_name = academy_name.strip()
            if await self._get_academy_by_name(academy_name):
                raise ConflictError(f'An academy named "{academy_name}" already exists.')
        else:
            if batch_id is None:
                raise BadRequestError(f"batchId is required for {invitation_type.value} invitations.")
            batch = await self._get_batch(batch_id)
            if not await self.access_service.can_invite(invited_by_user, invitation_type, batch):
                raise ForbiddenError("You do not have permission to invite users to this batch.")

        await self._ensure_email_available(email)

        temporary_password = generate_temporary_password()
        payload_fields = {
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "password": hash_password(temporary_password),
        }
        if invitation_type is InvitationType.CREATE_ACADEMY:
            payload = AcademyAdminPayload(**payload_fields, academyName=academy_name)
        elif invitation_type is InvitationType.BATCH_COACH:
            payload = BatchCoachPayload(**payload_fields, batchId=batch.id, subRole=sub_role)
        else:
            payload = BatchStudentPayload(**payload_fields, batchId=batch.id)

        try:
            async with atomic(self.db):
                invitation = Invitation(
                    type=invitation_type,
                    email=email,
                    data=payload.to_storage(),
                    status=InvitationStatus.PENDING,
                    version=1,
                    expires_at=self._new_expiry(),
                    created_by_id=invited_by_user.id,
                )
                self.db.add(invitation)
                await self.db.flush()

                token = create_invitation_token(invitation.id, invitation.version)

                await self.audit_service.log(
                    action=AuditAction.INVITATION_CREATE,
                    entity_type="invitation",
                    entity_id=invitation.id,
                    actor_id=invited_by_user.id,
                    ip_address=ip_address,
                    diff_json={
                        "type": invitation_type.value,
                        "email": email,
                        "expires_at": invitation.expires_at.isoformat(),
                    },
                )

                await self._send_activation_email(invitation, payload, temporary_password, token, batch)
        except IntegrityError as e:
            raise ConflictError("An invitation has already been sent to this email.") from e
        except MailDeliveryError as e:
            record_invitation_event(invitation_type.value, "mail_failed")
            raise MailDeliveryFailedError("Failed to send invitation email. The invitation was not created.") from e

        record_invitation_event(invitation_type.value, "created")
        log_json(
            logger,
            logging.INFO,
            "invitation_created",
            invitation_id=str(invitation.id),
            invitation_type=invitation_type.value,
            email=email,
        )
        return invitation, token

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    async def edit_invitation(
        self,
        invitation_id: UUID,
        requester: User,
        new_email: str,
        ip_address: str | None = None,
    ) -> tuple[Invitation, str]:
        """Change an invitation's email and re-send it with fresh credentials.

        Generates a new temporary password, bumps ``version`` (invalidating
        every earlier link) and restarts the expiry window.

        Raises:
            NotFoundError: Invitation does not exist
            ForbiddenError: Requester did not create the invitation
            ConflictError: Invitation already accepted, or new email taken
            ExpiredError: Invitation has expired and must be recreated
            MailDeliveryFailedError: Email could not be sent; the edit was
                rolled back
        """
        invitation = await self._get_owned_invitation(invitation_id, requester, action="edit")

        if invitation.status == InvitationStatus.ACCEPTED:
            raise ConflictError("Invitation has already been accepted.")
        if is_expired(invitation):
            raise ExpiredError("Invitation has expired. Create a new invitation instead.")

        new_email = normalize_email(new_email)
        if new_email != invitation.email:
            await self._ensure_email_available(new_email)

        payload = self._load_payload(invitation)
        batch = None
        if isinstance(payload, (BatchCoachPayload, BatchStudentPayload)):
            batch = await self._get_batch(payload.batch_id)

        temporary_password = generate_temporary_password()
        payload = payload.model_copy(update={"email": new_email, "password": hash_password(temporary_password)})
        invitation_type = invitation.type
        old_email = invitation.email
        old_version = invitation.version

        try:
            async with atomic(self.db):
                invitation.email = new_email
                invitation.data = payload.to_storage()
                invitation.version = old_version + 1
                invitation.expires_at = self._new_expiry()
                await self.db.flush()

                token = create_invitation_token(invitation.id, invitation.version)

                await self.audit_service.log(
                    action=AuditAction.INVITATION_UPDATE,
                    entity_type="invitation",
                    entity_id=invitation.id,
                    actor_id=requester.id,
                    ip_address=ip_address,
                    diff_json={
                        "email": {"old": old_email, "new": new_email},
                        "version": {"old": old_version, "new": old_version + 1},
                    },
                )

                await self._send_activation_email(invitation, payload, temporary_password, token, batch)
        except IntegrityError as e:
            raise ConflictError("An invitation has already been sent to this email.") from e
        except MailDeliveryError as e:
            record_invitation_event(invitation_type.value, "mail_failed")
            raise MailDeliveryFailedError("Failed to send invitation email. The invitation was not changed.") from e

        record_invitation_event(invitation_type.value, "edited")
        log_json(
            logger,
            logging.INFO,
            "invitation_edited",
            invitation_id=str(invitation.id),
            version=invitation.version,
        )
        return invitation, token

    # ------------------------------------------------------------------
    # Accept
    # ------------------------------------------------------------------

    async def accept_invitation(self, token: str, ip_address: str | None = None) -> ProvisionedIdentity:
        """Consume an invitation and provision the identity it describes.

        Raises:
            InvalidTokenError: Token malformed or not an invitation token
            ExpiredError: Token or invitation past its validity
            NotFoundError: Invitation already consumed or deleted, or target
                batch gone
            ConflictError: Already accepted, email taken, academy name taken
                or batch full
            VersionMismatchError: Token predates the latest edit
        """
        try:
            claims = verify_invitation_token(token)
        except TokenExpiredError as e:
            raise ExpiredError("Invitation link has expired.") from e
        except TokenInvalidError as e:
            raise InvalidTokenError("Invalid invitation token.") from e

        try:
            invitation_id = UUID(str(claims["id"]))
        except ValueError as e:
            raise InvalidTokenError("Invalid invitation token.") from e

        invitation = await self._get_invitation(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found. It may have already been accepted or deleted.")

        if invitation.status == InvitationStatus.ACCEPTED:
            raise ConflictError("Invitation has already been accepted.")
        if is_expired(invitation):
            raise ExpiredError("Invitation has expired.")
        if claims.get("version") != invitation.version:
            raise VersionMismatchError("This invitation link is no longer valid. Use the most recent invitation email.")

        payload = self._load_payload(invitation)
        invitation_type = invitation.type
        created_by_id = invitation.created_by_id

        try:
            async with atomic(self.db):
                claimed = await self.db.execute(
                    delete(Invitation)
                    .where(Invitation.id == invitation.id, Invitation.version == invitation.version)
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount != 1:
                    raise NotFoundError("Invitation not found. It may have already been accepted or deleted.")

                if invitation_type is InvitationType.CREATE_ACADEMY:
                    identity = await self._provision_academy_admin(payload)
                elif invitation_type is InvitationType.BATCH_COACH:
                    identity = await self._provision_batch_coach(payload)
                else:
                    identity = await self._provision_batch_student(payload)

                await self.audit_service.log(
                    action=AuditAction.INVITATION_ACCEPT,
                    entity_type="invitation",
                    entity_id=invitation_id,
                    actor_id=identity.user.id,
                    ip_address=ip_address,
                    diff_json={
                        "type": invitation_type.value,
                        "email": identity.user.email,
                        "user_id": str(identity.user.id),
                        "academy_id": str(identity.academy.id) if identity.academy else None,
                        "batch_id": str(identity.batch.id) if identity.batch else None,
                    },
                )
        except IntegrityError as e:
            raise ConflictError("Could not create the account because of a conflicting record. Please retry.") from e

        self.db.expunge(invitation)

        record_invitation_event(invitation_type.value, "accepted")
        log_json(
            logger,
            logging.INFO,
            "invitation_accepted",
            invitation_id=str(invitation_id),
            invitation_type=invitation_type.value,
            user_id=str(identity.user.id),
        )

        identity.invitation_id = invitation_id
        identity.invited_by_id = created_by_id
        return identity

    async def notify_accepted(self, identity: ProvisionedIdentity) -> int:
        """Tell the inviter's connected clients that their invitation was accepted.

        Call after the acceptance is committed. Returns the number of
        connections reached.
        """
        if self.relay is None or identity.invited_by_id is None:
            return 0
        return await self.relay.publish(
            user_room(identity.invited_by_id),
            "invitation.accepted",
            {
                "invitationId": str(identity.invitation_id),
                "type": identity.invitation_type.value,
                "userId": str(identity.user.id),
                "email": identity.user.email,
                "academyId": str(identity.academy.id) if identity.academy else None,
                "batchId": str(identity.batch.id) if identity.batch else None,
            },
        )

    async def _provision_user(self, payload: InvitationPayload, role: UserRole, sub_role: str | None = None) -> User:
        """Create user and profile in one flush.

        The email is checked again here: someone may have registered it
        since the invitation was sent.
        """
        if await self._get_user_by_email(payload.email):
            raise ConflictError("Email is already taken.")

        user = User(
            email=payload.email,
            role=role,
            sub_role=sub_role,
            password_hash=payload.password,
            has_password=True,
            code=await self._next_user_code(role),
            is_active=True,
            profile=Profile(first_name=payload.first_name, last_name=payload.last_name),
        )
        self.db.add(user)
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.USER_CREATE,
            entity_type="user",
            entity_id=user.id,
            actor_id=user.id,
            diff_json={"email": user.email, "role": role.value, "code": user.code},
        )
        return user

    async def _provision_academy_admin(self, payload: AcademyAdminPayload) -> ProvisionedIdentity:
        if await self._get_academy_by_name(payload.academy_name):
            raise ConflictError(f'An academy named "{payload.academy_name}" already exists.')

        user = await self._provision_user(payload, UserRole.ADMIN)
        academy = Academy(name=payload.academy_name, status=AcademyStatus.ACTIVE)
        self.db.add(academy)
        await self.db.flush()
        await self.db.execute(academy_admins.insert().values(academy_id=academy.id, user_id=user.id))

        await self.audit_service.log(
            action=AuditAction.ACADEMY_CREATE,
            entity_type="academy",
            entity_id=academy.id,
            actor_id=user.id,
            diff_json={"name": academy.name},
        )
        return ProvisionedIdentity(user=user, invitation_type=InvitationType.CREATE_ACADEMY, academy=academy)

    async def _provision_batch_coach(self, payload: BatchCoachPayload) -> ProvisionedIdentity:
        batch = await self._get_batch(payload.batch_id)

        user = await self._provision_user(payload, UserRole.COACH, sub_role=payload.sub_role)
        await self.db.execute(batch_coaches.insert().values(batch_id=batch.id, user_id=user.id))

        return ProvisionedIdentity(
            user=user, invitation_type=InvitationType.BATCH_COACH, academy=batch.academy, batch=batch
        )

    async def _provision_batch_student(self, payload: BatchStudentPayload) -> ProvisionedIdentity:
        # Row lock serializes concurrent acceptances into the same batch
        batch = await self._get_batch(payload.batch_id, for_update=True)

        result = await self.db.execute(
            select(func.count()).select_from(batch_students).where(batch_students.c.batch_id == batch.id)
        )
        enrolled = result.scalar_one()
        if enrolled >= batch.student_capacity:
            raise ConflictError(
                f'Batch "{batch.batch_code}" is full ({enrolled}/{batch.student_capacity} students).'
            )

        user = await self._provision_user(payload, UserRole.STUDENT)
        await self.db.execute(batch_students.insert().values(batch_id=batch.id, user_id=user.id))

        if batch.warning_cutoff is not None and enrolled + 1 >= batch.warning_cutoff:
            log_json(
                logger,
                logging.WARNING,
                "batch_capacity_warning",
                batch_id=str(batch.id),
                enrolled=enrolled + 1,
                capacity=batch.student_capacity,
            )

        return ProvisionedIdentity(
            user=user, invitation_type=InvitationType.BATCH_STUDENT, academy=batch.academy, batch=batch
        )

    # ------------------------------------------------------------------
    # Delete / read
    # ------------------------------------------------------------------

    async def delete_invitation(self, invitation_id: UUID, requester: User, ip_address: str | None = None) -> None:
        """Hard-delete an invitation. Only its creator may do so.

        Raises:
            NotFoundError: Invitation does not exist
            ForbiddenError: Requester did not create the invitation
        """
        invitation = await self._get_owned_invitation(invitation_id, requester, action="delete")

        await self.db.delete(invitation)
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.INVITATION_DELETE,
            entity_type="invitation",
            entity_id=invitation_id,
            actor_id=requester.id,
            ip_address=ip_address,
            diff_json={"email": invitation.email, "type": invitation.type.value},
        )
        record_invitation_event(invitation.type.value, "deleted")

    async def get_invitation(self, invitation_id: UUID, requester: User) -> Invitation:
        """Get one of the requester's invitations."""
        return await self._get_owned_invitation(invitation_id, requester, action="view")

    async def list_invitations(
        self,
        requester: User,
        page: int = 1,
        limit: int = 10,
        invitation_type: InvitationType | None = None,
        query: str | None = None,
    ) -> tuple[list[Invitation], int]:
        """List invitations created by the requester, newest first.

        Args:
            requester: Current user
            page: 1-based page number
            limit: Page size
            invitation_type: Optional type filter
            query: Optional case-insensitive email substring

        Returns:
            Tuple of (invitations on the page, total matching)
        """
        base = select(Invitation).where(Invitation.created_by_id == requester.id)
        if invitation_type is not None:
            base = base.where(Invitation.type == invitation_type)
        if query:
            base = base.where(Invitation.email.ilike(f"%{query.strip()}%"))

        page_query = paginate(base.order_by(Invitation.created_at.desc(), Invitation.id), page, limit)
        result = await self.db.execute(page_query)
        invitations = list(result.scalars().all())

        total_result = await self.db.execute(select(func.count()).select_from(base.subquery()))
        return invitations, total_result.scalar_one()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_expiry(self) -> datetime:
        return datetime.now(UTC) + timedelta(hours=self.settings.invitation_ttl_hours)

    def _load_payload(self, invitation: Invitation) -> InvitationPayload:
        model = PAYLOAD_MODELS[invitation.type]
        try:
            return model.model_validate(invitation.data or {})
        except ValidationError as e:
            log_json(
                logger,
                logging.ERROR,
                "invitation_payload_invalid",
                invitation_id=str(invitation.id),
                errors=e.errors(include_url=False),
            )
            raise BadRequestError("Invitation data is invalid.") from e

    async def _send_activation_email(
        self,
        invitation: Invitation,
        payload: InvitationPayload,
        temporary_password: str,
        token: str,
        batch: Batch | None,
    ) -> None:
        message = compose_invitation_email(
            invitation.type,
            payload.to_storage(),
            invitation.email,
            temporary_password,
            token,
            academy_name=batch.academy.name if batch is not None else None,
            batch_code=batch.batch_code if batch is not None else None,
        )
        await self.mailer.send(invitation.email, message.subject, message.text, message.html)

    async def _ensure_email_available(self, email: str, now: datetime | None = None) -> None:
        """Reject emails with a live invitation or an existing account.

        Expired pending invitations for the email are removed first so they
        do not block a fresh one.
        """
        expired = await self.db.execute(
            delete(Invitation)
            .where(
                Invitation.email == email,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at.is_not(None),
                # Same boundary as is_expired
                Invitation.expires_at < (now or datetime.now(UTC)),
            )
            .execution_options(synchronize_session=False)
        )
        if expired.rowcount:
            log_json(logger, logging.INFO, "expired_invitations_purged", email=email, count=expired.rowcount)

        pending = await self.db.execute(
            select(Invitation.id).where(
                Invitation.email == email,
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        if pending.first() is not None:
            raise ConflictError("An invitation has already been sent to this email.")

        if await self._get_user_by_email(email):
            raise ConflictError("A user with this email already exists.")

    async def _get_owned_invitation(self, invitation_id: UUID, requester: User, action: str) -> Invitation:
        invitation = await self._get_invitation(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found.")
        if invitation.created_by_id != requester.id:
            raise ForbiddenError(f"You do not have permission to {action} this invitation.")
        return invitation

    async def _get_invitation(self, invitation_id: UUID) -> Invitation | None:
        result = await self.db.execute(select(Invitation).where(Invitation.id == invitation_id))
        return result.scalar_one_or_none()

    async def _get_batch(self, batch_id: UUID, for_update: bool = False) -> Batch:
        query = select(Batch).options(selectinload(Batch.academy)).where(Batch.id == batch_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        batch = result.scalar_one_or_none()
        if batch is None:
            raise NotFoundError("Batch not found.")
        return batch

    async def _get_academy_by_name(self, name: str) -> Academy | None:
        result = await self.db.execute(select(Academy).where(func.lower(Academy.name) == name.lower()))
        return result.scalar_one_or_none()

    async def _get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _next_user_code(self, role: UserRole) -> str:
        prefix = code_prefix_for(role)
        result = await self.db.execute(select(User.code).where(User.code.startswith(prefix)))
        return next_code(prefix, result.scalars().all())
