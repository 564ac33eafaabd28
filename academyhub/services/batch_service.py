"""Academy, batch and user directory operations."""
import logging
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.codes import BATCH_CODE_PREFIX, next_code
from academyhub.core.errors import ConflictError, ForbiddenError, NotFoundError
from academyhub.core.structured_logging import log_json
from academyhub.models.academy import Academy
from academyhub.models.batch import Batch
from academyhub.models.enums import AuditAction, UserRole
from academyhub.models.user import User
from academyhub.services.access_service import AccessService, paginate
from academyhub.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class BatchService:
    """Service for creating batches and listing what a user may see."""

    def __init__(self, db: AsyncSession):
        """Initialize batch service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)
        self.access_service = AccessService(db)

    async def create_batch(
        self,
        requester: User,
        academy_id: UUID,
        student_capacity: int,
        warning_cutoff: int | None = None,
        description: str | None = None,
        ip_address: str | None = None,
    ) -> Batch:
        """Create a batch in an academy with the next sequential batch code.

        Args:
            requester: Super admin, or admin of the academy
            academy_id: Owning academy
            student_capacity: Maximum number of enrolled students
            warning_cutoff: Enrollment count that triggers a capacity warning
            description: Free-form description
            ip_address: Client IP address (for audit)

        Returns:
            Created Batch instance

        Raises:
            NotFoundError: Academy does not exist
            ForbiddenError: Requester does not administer the academy
            ConflictError: Batch code collided with a concurrent create
        """
        result = await self.db.execute(select(Academy).where(Academy.id == academy_id))
        academy = result.scalar_one_or_none()
        if academy is None:
            raise NotFoundError("Academy not found.")

        if requester.role != UserRole.SUPER_ADMIN and not await self.access_service.is_academy_admin(
            requester.id, academy.id
        ):
            raise ForbiddenError("You do not have permission to create batches in this academy.")

        codes_result = await self.db.execute(select(Batch.batch_code))
        batch_code = next_code(BATCH_CODE_PREFIX, codes_result.scalars().all())

        batch = Batch(
            batch_code=batch_code,
            academy_id=academy.id,
            student_capacity=student_capacity,
            warning_cutoff=warning_cutoff,
            description=description,
        )
        self.db.add(batch)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ConflictError("Batch code already in use. Please retry.") from e

        await self.audit_service.log(
            action=AuditAction.BATCH_CREATE,
            entity_type="batch",
            entity_id=batch.id,
            actor_id=requester.id,
            ip_address=ip_address,
            diff_json={
                "batch_code": batch_code,
                "academy_id": str(academy.id),
                "student_capacity": student_capacity,
            },
        )
        log_json(logger, logging.INFO, "batch_created", batch_id=str(batch.id), batch_code=batch_code)
        return batch

    async def list_academies(self, user: User, page: int = 1, limit: int = 10) -> tuple[list[Academy], int]:
        query = self.access_service.academies_query(user)
        return await self._page(query, Academy.name, page, limit)

    async def list_batches(self, user: User, page: int = 1, limit: int = 10) -> tuple[list[Batch], int]:
        query = self.access_service.batches_query(user)
        return await self._page(query, Batch.batch_code, page, limit)

    async def list_users(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        role: UserRole | None = None,
    ) -> tuple[list[User], int]:
        """List users visible to ``user``, optionally filtered by role."""
        query = self.access_service.users_query(user)
        if role is not None:
            query = query.where(User.role == role)
        return await self._page(query, User.email, page, limit)

    async def _page(self, query: Select, order_by, page: int, limit: int) -> tuple[list, int]:
        result = await self.db.execute(paginate(query.order_by(order_by), page, limit))
        items = list(result.scalars().all())
        total = await self.db.execute(select(func.count()).select_from(query.subquery()))
        return items, total.scalar_one()
