"""Role-scoped read queries and membership checks.

Builds the ``select`` statements that decide which academies, batches and
users a given user may see, plus the membership predicates the invitation
engine uses for authorization.
"""
from uuid import UUID

from sqlalchemy import Select, exists, false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.errors import BadRequestError
from academyhub.models.academy import Academy
from academyhub.models.associations import academy_admins, batch_coaches, batch_students
from academyhub.models.batch import Batch
from academyhub.models.enums import InvitationType, UserRole
from academyhub.models.user import User

MAX_PAGE_SIZE = 100


def paginate(query: Select, page: int, limit: int) -> Select:
    """Translate page/limit into offset/limit.

    Raises:
        BadRequestError: If page or limit is not a positive integer
    """
    if page < 1 or limit < 1:
        raise BadRequestError("Page and limit must be positive integers.")
    limit = min(limit, MAX_PAGE_SIZE)
    return query.offset((page - 1) * limit).limit(limit)


def _admin_academy_ids(user_id: UUID) -> Select:
    return select(academy_admins.c.academy_id).where(academy_admins.c.user_id == user_id)


def _coach_batch_ids(user_id: UUID) -> Select:
    return select(batch_coaches.c.batch_id).where(batch_coaches.c.user_id == user_id)


def _student_batch_ids(user_id: UUID) -> Select:
    return select(batch_students.c.batch_id).where(batch_students.c.user_id == user_id)


class AccessService:
    """Authorization-filtered queries over academies, batches and users."""

    def __init__(self, db: AsyncSession):
        """Initialize access service.

        Args:
            db: Database session
        """
        self.db = db

    @staticmethod
    def academies_query(user: User) -> Select:
        """Academies visible to ``user``."""
        query = select(Academy)
        if user.role == UserRole.SUPER_ADMIN:
            return query
        if user.role == UserRole.ADMIN:
            return query.where(Academy.id.in_(_admin_academy_ids(user.id)))
        if user.role == UserRole.COACH:
            return query.where(
                Academy.id.in_(select(Batch.academy_id).where(Batch.id.in_(_coach_batch_ids(user.id))))
            )
        if user.role == UserRole.STUDENT:
            return query.where(
                Academy.id.in_(select(Batch.academy_id).where(Batch.id.in_(_student_batch_ids(user.id))))
            )
        return query.where(false())

    @staticmethod
    def batches_query(user: User) -> Select:
        """Batches visible to ``user``."""
        query = select(Batch)
        if user.role == UserRole.SUPER_ADMIN:
            return query
        if user.role == UserRole.ADMIN:
            return query.where(Batch.academy_id.in_(_admin_academy_ids(user.id)))
        if user.role == UserRole.COACH:
            return query.where(Batch.id.in_(_coach_batch_ids(user.id)))
        if user.role == UserRole.STUDENT:
            return query.where(Batch.id.in_(_student_batch_ids(user.id)))
        return query.where(false())

    @staticmethod
    def users_query(user: User) -> Select:
        """Users visible to ``user``.

        Admins see admins, coaches and students of their academies; coaches
        see coaches and students of their batches; everyone sees themself.
        """
        query = select(User)
        if user.role == UserRole.SUPER_ADMIN:
            return query
        if user.role == UserRole.ADMIN:
            academy_ids = _admin_academy_ids(user.id)
            academy_batch_ids = select(Batch.id).where(Batch.academy_id.in_(academy_ids))
            return query.where(
                or_(
                    User.id.in_(
                        select(academy_admins.c.user_id).where(academy_admins.c.academy_id.in_(academy_ids))
                    ),
                    User.id.in_(
                        select(batch_coaches.c.user_id).where(batch_coaches.c.batch_id.in_(academy_batch_ids))
                    ),
                    User.id.in_(
                        select(batch_students.c.user_id).where(batch_students.c.batch_id.in_(academy_batch_ids))
                    ),
                )
            )
        if user.role == UserRole.COACH:
            batch_ids = _coach_batch_ids(user.id)
            return query.where(
                or_(
                    User.id.in_(select(batch_coaches.c.user_id).where(batch_coaches.c.batch_id.in_(batch_ids))),
                    User.id.in_(select(batch_students.c.user_id).where(batch_students.c.batch_id.in_(batch_ids))),
                )
            )
        return query.where(User.id == user.id)

    async def is_academy_admin(self, user_id: UUID, academy_id: UUID) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    academy_admins.c.user_id == user_id,
                    academy_admins.c.academy_id == academy_id,
                )
            )
        )
        return bool(result.scalar())

    async def is_batch_coach(self, user_id: UUID, batch_id: UUID) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    batch_coaches.c.user_id == user_id,
                    batch_coaches.c.batch_id == batch_id,
                )
            )
        )
        return bool(result.scalar())

    async def can_invite(self, user: User, invitation_type: InvitationType, batch: Batch | None = None) -> bool:
        """Whether ``user`` may create an invitation of ``invitation_type``.

        CREATE_ACADEMY is reserved to super admins. Coach invitations may also
        come from an admin of the batch's academy, student invitations from a
        coach assigned to the batch.
        """
        if user.role == UserRole.SUPER_ADMIN:
            return True
        if invitation_type is InvitationType.BATCH_COACH and user.role == UserRole.ADMIN:
            return batch is not None and await self.is_academy_admin(user.id, batch.academy_id)
        if invitation_type is InvitationType.BATCH_STUDENT and user.role == UserRole.COACH:
            return batch is not None and await self.is_batch_coach(user.id, batch.id)
        return False
