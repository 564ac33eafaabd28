"""Bootstrap of the first super admin."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.codes import code_prefix_for, format_code
from academyhub.core.errors import BadRequestError, ConflictError
from academyhub.core.security import PasswordValidationError, hash_password, validate_password
from academyhub.models.enums import AuditAction, UserRole
from academyhub.models.profile import Profile
from academyhub.models.user import User
from academyhub.services.audit_service import AuditService


class BootstrapService:
    """Creates the platform's first SUPER_ADMIN account."""

    def __init__(self, db: AsyncSession):
        """Initialize bootstrap service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)

    async def create_super_admin(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        ip_address: str | None = None,
    ) -> User:
        """Create the first super admin.

        Only allowed while no super admin exists; everyone else is onboarded
        through invitations.

        Args:
            email: Super admin email
            password: Super admin password
            first_name: First name for the profile
            last_name: Last name for the profile
            ip_address: Client IP address (for audit)

        Returns:
            Created User instance

        Raises:
            ConflictError: If a super admin already exists
            BadRequestError: If the password is too weak
        """
        result = await self.db.execute(select(User.id).where(User.role == UserRole.SUPER_ADMIN).limit(1))
        if result.first() is not None:
            raise ConflictError("Platform already bootstrapped.")

        try:
            validate_password(password)
        except PasswordValidationError as e:
            raise BadRequestError(str(e), details={"password": str(e)}) from e

        user = User(
            email=email.strip().lower(),
            password_hash=hash_password(password),
            has_password=True,
            role=UserRole.SUPER_ADMIN,
            code=format_code(code_prefix_for(UserRole.SUPER_ADMIN), 1),
            is_active=True,
            profile=Profile(first_name=first_name, last_name=last_name),
        )
        self.db.add(user)
        await self.db.flush()

        # Bootstrap action, no authenticated actor yet
        await self.audit_service.log(
            action=AuditAction.USER_CREATE,
            entity_type="user",
            entity_id=user.id,
            actor_id=None,
            ip_address=ip_address,
            diff_json={"email": user.email, "role": UserRole.SUPER_ADMIN.value},
        )
        return user
