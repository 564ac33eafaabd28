"""Shared test helpers: a recording mailer and user factories."""

from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.security import create_access_token, hash_password
from academyhub.models.enums import UserRole
from academyhub.models.profile import Profile
from academyhub.models.user import User
from academyhub.services.mail_service import MailDeliveryError

SUPER_ADMIN_PASSWORD = "SuperAdmin123!"
DEFAULT_PASSWORD = "TestPass123!"


@dataclass
class SentMail:
    to: str
    subject: str
    text: str
    html: str | None

    def line_value(self, label: str) -> str:
        """Value of a ``Label: value`` line in the plain-text body."""
        prefix = f"{label}: "
        for line in self.text.splitlines():
            if line.startswith(prefix):
                return line[len(prefix):]
        raise AssertionError(f"{label!r} not found in email body")

    @property
    def link(self) -> str:
        for label in ("Accept Invitation", "Reset Password"):
            try:
                return self.line_value(label)
            except AssertionError:
                continue
        raise AssertionError("No link in email body")

    @property
    def link_params(self) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlparse(self.link).query).items()}

    @property
    def token(self) -> str:
        return self.link_params["token"]

    @property
    def temporary_password(self) -> str:
        return self.line_value("Temporary Password")


@dataclass
class FakeMailer:
    """Records outgoing mail instead of talking to SMTP."""

    sent: list[SentMail] = field(default_factory=list)
    fail: bool = False

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        if self.fail:
            raise MailDeliveryError(f"Failed to send email to {to}")
        self.sent.append(SentMail(to=to, subject=subject, text=text, html=html))

    @property
    def last(self) -> SentMail:
        assert self.sent, "no mail was sent"
        return self.sent[-1]


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    code: str | None,
    password: str = DEFAULT_PASSWORD,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(password),
        has_password=True,
        role=role,
        code=code,
        is_active=True,
        profile=Profile(first_name=first_name, last_name=last_name),
    )
    db.add(user)
    await db.flush()
    return user
