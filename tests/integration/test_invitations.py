"""Integration tests for the invitation lifecycle.

Covers create, edit, accept and delete over HTTP, including the rules that
links die after an edit, that acceptance is single-use and that a failed
email leaves nothing behind.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.core.config import get_settings
from academyhub.core.errors import ConflictError, NotFoundError
from academyhub.core.security import create_invitation_token, create_token, verify_password
from academyhub.models.academy import Academy
from academyhub.models.associations import academy_admins, batch_coaches, batch_students
from academyhub.models.audit_event import AuditEvent
from academyhub.models.batch import Batch
from academyhub.models.enums import AuditAction, UserRole
from academyhub.models.invitation import Invitation
from academyhub.models.profile import Profile
from academyhub.models.user import User
from academyhub.services.invitation_service import InvitationService, is_expired
from tests.helpers import FakeMailer, auth_headers, make_user


def coach_invite(batch: Batch, email: str = "newcoach@example.com", sub_role: str | None = "Head") -> dict:
    return {
        "type": "BATCH_COACH",
        "email": email,
        "firstName": "Nina",
        "lastName": "Newcoach",
        "batchId": str(batch.id),
        "subRole": sub_role,
    }


def student_invite(batch: Batch, email: str = "student@example.com") -> dict:
    return {
        "type": "BATCH_STUDENT",
        "email": email,
        "firstName": "Sam",
        "lastName": "Student",
        "batchId": str(batch.id),
    }


def academy_invite(name: str = "Rooks Academy", email: str = "founder@example.com") -> dict:
    return {
        "type": "CREATE_ACADEMY",
        "email": email,
        "firstName": "Fiona",
        "lastName": "Founder",
        "academyName": name,
    }


async def count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.mark.asyncio
class TestCreateInvitation:
    """POST /api/invitations"""

    async def test_admin_invites_coach_to_own_batch(
        self,
        client: AsyncClient,
        db: AsyncSession,
        mailer: FakeMailer,
        academy_admin: User,
        batch: Batch,
    ):
        response = await client.post(
            "/api/invitations", json=coach_invite(batch), headers=auth_headers(academy_admin)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "BATCH_COACH"
        assert data["email"] == "newcoach@example.com"
        assert data["status"] == "PENDING"
        assert data["version"] == 1
        assert data["sub_role"] == "Head"
        assert "password" not in data

        # Exactly one row, and no user exists yet
        result = await db.execute(select(Invitation).where(Invitation.email == "newcoach@example.com"))
        invitations = result.scalars().all()
        assert len(invitations) == 1
        result = await db.execute(select(User).where(User.email == "newcoach@example.com"))
        assert result.scalar_one_or_none() is None

        # The stored credential is a hash of the mailed temporary password
        mail = mailer.last
        assert mail.to == "newcoach@example.com"
        assert mail.subject == "Batch Coach Invitation"
        stored_hash = invitations[0].data["password"]
        assert stored_hash != mail.temporary_password
        assert verify_password(mail.temporary_password, stored_hash)

        params = mail.link_params
        assert params["type"] == "BATCH_COACH"
        assert params["name"] == "B01 as (Head) from Knights Academy"

    async def test_invitation_expires_after_ttl(
        self, client: AsyncClient, db: AsyncSession, academy_admin: User, batch: Batch
    ):
        await client.post("/api/invitations", json=coach_invite(batch), headers=auth_headers(academy_admin))

        result = await db.execute(select(Invitation))
        invitation = result.scalar_one()
        expires_at = invitation.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        ttl = expires_at - datetime.now(UTC)
        assert timedelta(hours=71) < ttl <= timedelta(hours=72)

    async def test_create_writes_audit_event(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        response = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        assert response.status_code == 201

        result = await db.execute(
            select(AuditEvent).where(
                AuditEvent.action == AuditAction.INVITATION_CREATE,
                AuditEvent.actor_id == coach.id,
            )
        )
        event = result.scalar_one()
        assert event.diff_json["type"] == "BATCH_STUDENT"
        assert "password" not in event.diff_json

    async def test_email_is_normalized(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        response = await client.post(
            "/api/invitations",
            json=student_invite(batch, email="Mixed.Case@Example.com"),
            headers=auth_headers(coach),
        )
        assert response.status_code == 201
        assert response.json()["email"] == "mixed.case@example.com"

    async def test_duplicate_pending_invitation_conflicts(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        first = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        assert first.status_code == 201

        second = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        assert second.status_code == 409
        assert second.json()["error"] == "conflict"
        assert await count(db, Invitation) == 1

    async def test_existing_user_email_conflicts(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        await make_user(db, "taken@example.com", UserRole.SUBSCRIBER, None)
        await db.commit()

        response = await client.post(
            "/api/invitations", json=student_invite(batch, email="taken@example.com"), headers=auth_headers(coach)
        )

        assert response.status_code == 409
        assert response.json()["message"] == "A user with this email already exists."
        assert await count(db, Invitation) == 0

    async def test_expired_pending_invitation_does_not_block_new_one(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        await db.execute(update(Invitation).values(expires_at=datetime.now(UTC) - timedelta(hours=1)))
        await db.commit()

        response = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        assert response.status_code == 201
        assert await count(db, Invitation) == 1

    async def test_invitation_expiring_exactly_now_still_blocks(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        boundary = datetime(2030, 1, 1, 12, 0, tzinfo=UTC)
        await db.execute(update(Invitation).values(expires_at=boundary))
        await db.commit()
        result = await db.execute(select(Invitation))
        invitation = result.scalar_one()
        service = InvitationService(db, mailer)

        assert is_expired(invitation, now=boundary) is False
        with pytest.raises(ConflictError):
            await service._ensure_email_available("student@example.com", now=boundary)
        assert await count(db, Invitation) == 1

        one_second_later = boundary + timedelta(seconds=1)
        assert is_expired(invitation, now=one_second_later) is True
        await service._ensure_email_available("student@example.com", now=one_second_later)
        assert await count(db, Invitation) == 0

    async def test_mail_failure_leaves_no_invitation(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        mailer.fail = True

        response = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        assert response.status_code == 500
        assert response.json()["error"] == "mail_delivery_failed"
        assert await count(db, Invitation) == 0
        result = await db.execute(select(AuditEvent).where(AuditEvent.action == AuditAction.INVITATION_CREATE))
        assert result.scalar_one_or_none() is None

    async def test_coach_cannot_invite_to_batch_they_do_not_coach(
        self, client: AsyncClient, db: AsyncSession, coach: User, other_batch: Batch
    ):
        response = await client.post(
            "/api/invitations", json=student_invite(other_batch), headers=auth_headers(coach)
        )

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert await count(db, Invitation) == 0

    async def test_admin_cannot_invite_coach_to_other_academy(
        self, client: AsyncClient, academy_admin: User, other_batch: Batch
    ):
        response = await client.post(
            "/api/invitations", json=coach_invite(other_batch), headers=auth_headers(academy_admin)
        )
        assert response.status_code == 403

    async def test_admin_cannot_invite_students(
        self, client: AsyncClient, academy_admin: User, batch: Batch
    ):
        response = await client.post(
            "/api/invitations", json=student_invite(batch), headers=auth_headers(academy_admin)
        )
        assert response.status_code == 403

    async def test_only_super_admin_creates_academy_invitations(
        self, client: AsyncClient, academy_admin: User
    ):
        response = await client.post(
            "/api/invitations", json=academy_invite(), headers=auth_headers(academy_admin)
        )
        assert response.status_code == 403

    async def test_student_cannot_reach_invitation_endpoint(
        self, client: AsyncClient, db: AsyncSession, batch: Batch
    ):
        student = await make_user(db, "kid@example.com", UserRole.STUDENT, "S01")
        await db.commit()

        response = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(student))
        assert response.status_code == 403

    async def test_unknown_batch_is_not_found(self, client: AsyncClient, super_admin: User):
        payload = {
            "type": "BATCH_STUDENT",
            "email": "ghost@example.com",
            "firstName": "G",
            "lastName": "Host",
            "batchId": "00000000-0000-0000-0000-000000000000",
        }
        response = await client.post("/api/invitations", json=payload, headers=auth_headers(super_admin))
        assert response.status_code == 404

    async def test_batch_invitation_requires_batch_id(self, client: AsyncClient, super_admin: User):
        payload = {"type": "BATCH_COACH", "email": "x@example.com", "firstName": "X", "lastName": "Y"}
        response = await client.post("/api/invitations", json=payload, headers=auth_headers(super_admin))
        assert response.status_code == 422

    async def test_academy_name_already_taken(
        self, client: AsyncClient, super_admin: User, academy: Academy
    ):
        response = await client.post(
            "/api/invitations", json=academy_invite(name=academy.name), headers=auth_headers(super_admin)
        )
        assert response.status_code == 409

    async def test_requires_authentication(self, client: AsyncClient, batch: Batch):
        response = await client.post("/api/invitations", json=student_invite(batch))
        assert response.status_code in (401, 403)


@pytest.mark.asyncio
class TestAcceptInvitation:
    """POST /api/invitations/accept"""

    async def test_accept_student_invitation(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        mail = mailer.last

        response = await client.post("/api/invitations/accept", json={"token": mail.token})

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "student@example.com"
        assert data["role"] == "STUDENT"
        assert data["code"] == "S01"
        assert data["batch_code"] == "B01"
        assert data["academy_name"] == "Knights Academy"

        # The invitation is consumed
        assert await count(db, Invitation) == 0

        result = await db.execute(select(User).where(User.email == "student@example.com"))
        user = result.scalar_one()
        assert user.role == UserRole.STUDENT
        assert user.has_password is True
        assert verify_password(mail.temporary_password, user.password_hash)

        result = await db.execute(select(Profile).where(Profile.id == user.profile_id))
        profile = result.scalar_one()
        assert profile.first_name == "Sam"
        assert profile.last_name == "Student"

        result = await db.execute(
            select(batch_students).where(
                batch_students.c.batch_id == batch.id, batch_students.c.user_id == user.id
            )
        )
        assert result.first() is not None

    async def test_new_user_can_log_in_with_temporary_password(
        self, client: AsyncClient, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        mail = mailer.last
        await client.post("/api/invitations/accept", json={"token": mail.token})

        response = await client.post(
            "/api/auth/login", json={"email": "student@example.com", "password": mail.temporary_password}
        )

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_accept_coach_invitation(
        self,
        client: AsyncClient,
        db: AsyncSession,
        mailer: FakeMailer,
        academy_admin: User,
        coach: User,
        batch: Batch,
    ):
        await client.post("/api/invitations", json=coach_invite(batch), headers=auth_headers(academy_admin))

        response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})

        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "COACH"
        # C01 is taken by the existing coach
        assert data["code"] == "C02"

        result = await db.execute(select(User).where(User.email == "newcoach@example.com"))
        new_coach = result.scalar_one()
        assert new_coach.sub_role == "Head"
        result = await db.execute(
            select(batch_coaches).where(
                batch_coaches.c.batch_id == batch.id, batch_coaches.c.user_id == new_coach.id
            )
        )
        assert result.first() is not None

    async def test_accept_academy_invitation_creates_academy(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, super_admin: User
    ):
        response = await client.post(
            "/api/invitations", json=academy_invite(), headers=auth_headers(super_admin)
        )
        assert response.status_code == 201
        assert mailer.last.subject == "Academy Admin Invitation"
        assert mailer.last.link_params["name"] == "Rooks Academy"

        response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})

        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "ADMIN"
        assert data["code"] == "A01"
        assert data["academy_name"] == "Rooks Academy"

        result = await db.execute(select(Academy).where(Academy.name == "Rooks Academy"))
        academy = result.scalar_one()
        result = await db.execute(
            select(academy_admins.c.user_id).where(academy_admins.c.academy_id == academy.id)
        )
        assert [str(row[0]) for row in result.all()] == [data["user_id"]]

    async def test_second_accept_is_not_found(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        token = mailer.last.token

        first = await client.post("/api/invitations/accept", json={"token": token})
        second = await client.post("/api/invitations/accept", json={"token": token})

        assert first.status_code == 201
        assert second.status_code == 404
        assert second.json()["error"] == "not_found"
        result = await db.execute(select(func.count()).select_from(User).where(User.email == "student@example.com"))
        assert result.scalar_one() == 1

    async def test_accept_after_edit_with_old_link_is_version_mismatch(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        old_token = mailer.last.token

        await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "student@example.com"},
            headers=auth_headers(coach),
        )
        new_token = mailer.last.token

        stale = await client.post("/api/invitations/accept", json={"token": old_token})
        assert stale.status_code == 409
        assert stale.json()["error"] == "version_mismatch"
        assert await count(db, Invitation) == 1

        fresh = await client.post("/api/invitations/accept", json={"token": new_token})
        assert fresh.status_code == 201

    async def test_expired_invitation(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        await db.execute(update(Invitation).values(expires_at=datetime.now(UTC) - timedelta(minutes=1)))
        await db.commit()

        response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})

        assert response.status_code == 410
        assert response.json()["error"] == "expired"
        result = await db.execute(select(User).where(User.email == "student@example.com"))
        assert result.scalar_one_or_none() is None

    async def test_expired_token(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        result = await db.execute(select(Invitation))
        invitation = result.scalar_one()
        token = create_token(
            {"id": str(invitation.id), "version": invitation.version, "type": "invitation"},
            get_settings().jwt_invitation_secret,
            timedelta(seconds=-10),
        )

        response = await client.post("/api/invitations/accept", json={"token": token})

        assert response.status_code == 410

    async def test_garbage_token_is_invalid(self, client: AsyncClient):
        response = await client.post("/api/invitations/accept", json={"token": "not-a-jwt"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_token"

    async def test_access_token_is_not_an_invitation_token(
        self, client: AsyncClient, coach: User
    ):
        token = auth_headers(coach)["Authorization"].removeprefix("Bearer ")
        response = await client.post("/api/invitations/accept", json={"token": token})
        assert response.status_code == 400

    async def test_token_for_deleted_invitation_is_not_found(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        result = await db.execute(select(Invitation))
        invitation = result.scalar_one()
        token = create_invitation_token(invitation.id, invitation.version)

        await client.delete(f"/api/invitations/{invitation.id}", headers=auth_headers(coach))
        response = await client.post("/api/invitations/accept", json={"token": token})

        assert response.status_code == 404

    async def test_full_batch_rejects_student(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        tokens = []
        for i in range(3):
            response = await client.post(
                "/api/invitations",
                json=student_invite(batch, email=f"student{i}@example.com"),
                headers=auth_headers(coach),
            )
            assert response.status_code == 201
            tokens.append(mailer.last.token)

        # Capacity is 2
        for token in tokens[:2]:
            response = await client.post("/api/invitations/accept", json={"token": token})
            assert response.status_code == 201

        response = await client.post("/api/invitations/accept", json={"token": tokens[2]})

        assert response.status_code == 409
        assert "full" in response.json()["message"]
        # The losing invitation is kept
        result = await db.execute(select(Invitation).where(Invitation.email == "student2@example.com"))
        assert result.scalar_one_or_none() is not None
        result = await db.execute(select(User).where(User.email == "student2@example.com"))
        assert result.scalar_one_or_none() is None

    async def test_email_registered_after_invite_conflicts_at_accept(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post(
            "/api/invitations", json=student_invite(batch, email="late@example.com"), headers=auth_headers(coach)
        )
        token = mailer.last.token
        await make_user(db, "late@example.com", UserRole.SUBSCRIBER, "U01")
        await db.commit()
        profiles_before = await count(db, Profile)

        response = await client.post("/api/invitations/accept", json={"token": token})

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"
        assert response.json()["message"] == "Email is already taken."
        # Nothing persisted, the invitation is kept
        result = await db.execute(select(Invitation).where(Invitation.email == "late@example.com"))
        assert result.scalar_one_or_none() is not None
        assert await count(db, Profile) == profiles_before
        result = await db.execute(select(batch_students).where(batch_students.c.batch_id == batch.id))
        assert result.first() is None

    async def test_losing_concurrent_claim_is_not_found(
        self,
        db: AsyncSession,
        client: AsyncClient,
        mailer: FakeMailer,
        coach: User,
        batch: Batch,
        monkeypatch: pytest.MonkeyPatch,
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        token = mailer.last.token
        users_before = await count(db, User)
        profiles_before = await count(db, Profile)
        fetch = InvitationService._get_invitation

        async def fetch_then_lose_race(service: InvitationService, invitation_id: UUID):
            invitation = await fetch(service, invitation_id)
            # A concurrent accept consumes the row between lookup and claim
            await service.db.execute(
                delete(Invitation)
                .where(Invitation.id == invitation_id)
                .execution_options(synchronize_session=False)
            )
            return invitation

        monkeypatch.setattr(InvitationService, "_get_invitation", fetch_then_lose_race)

        with pytest.raises(NotFoundError):
            await InvitationService(db, mailer).accept_invitation(token)

        assert await count(db, User) == users_before
        assert await count(db, Profile) == profiles_before
        result = await db.execute(select(batch_students))
        assert result.first() is None

    async def test_user_code_follows_highest_existing_code(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await make_user(db, "imported@example.com", UserRole.STUDENT, "S05")
        await db.commit()
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})

        assert response.status_code == 201
        assert response.json()["code"] == "S06"

    async def test_accept_writes_audit_events(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})
        user_id = UUID(response.json()["user_id"])

        result = await db.execute(select(AuditEvent.action).where(AuditEvent.actor_id == user_id))
        actions = set(result.scalars().all())
        assert AuditAction.INVITATION_ACCEPT in actions
        assert AuditAction.USER_CREATE in actions

    async def test_inviter_is_notified_over_relay(
        self, client: AsyncClient, mailer: FakeMailer, relay, coach: User, batch: Batch
    ):
        class Recorder:
            def __init__(self):
                self.messages = []

            async def send_json(self, data):
                self.messages.append(data)

        connection = Recorder()
        await relay.connect(coach.id, connection)
        try:
            await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
            response = await client.post("/api/invitations/accept", json={"token": mailer.last.token})
        finally:
            await relay.disconnect(connection)

        assert response.status_code == 201
        assert len(connection.messages) == 1
        message = connection.messages[0]
        assert message["event"] == "invitation.accepted"
        assert message["data"]["email"] == "student@example.com"
        assert message["data"]["type"] == "BATCH_STUDENT"


@pytest.mark.asyncio
class TestEditInvitation:
    """PATCH /api/invitations/{id}"""

    async def test_edit_changes_email_and_bumps_version(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        first_password = mailer.last.temporary_password

        response = await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "moved@example.com"},
            headers=auth_headers(coach),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "moved@example.com"
        assert data["version"] == 2

        assert len(mailer.sent) == 2
        assert mailer.last.to == "moved@example.com"
        assert mailer.last.temporary_password != first_password

        result = await db.execute(select(Invitation))
        invitation = result.scalar_one()
        assert invitation.data["email"] == "moved@example.com"
        assert verify_password(mailer.last.temporary_password, invitation.data["password"])

    async def test_edit_by_non_creator_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch, super_admin: User
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        response = await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "other@example.com"},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == 403

    async def test_edit_expired_invitation(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        await db.execute(update(Invitation).values(expires_at=datetime.now(UTC) - timedelta(minutes=1)))
        await db.commit()

        response = await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "late@example.com"},
            headers=auth_headers(coach),
        )

        assert response.status_code == 410

    async def test_edit_to_taken_email_conflicts(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        await client.post(
            "/api/invitations", json=student_invite(batch, email="second@example.com"), headers=auth_headers(coach)
        )

        response = await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "second@example.com"},
            headers=auth_headers(coach),
        )

        assert response.status_code == 409

    async def test_edit_mail_failure_keeps_previous_version(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        token = mailer.last.token
        mailer.fail = True

        response = await client.patch(
            f"/api/invitations/{created.json()['id']}",
            json={"email": "moved@example.com"},
            headers=auth_headers(coach),
        )
        assert response.status_code == 500

        mailer.fail = False
        accepted = await client.post("/api/invitations/accept", json={"token": token})
        assert accepted.status_code == 201
        assert accepted.json()["email"] == "student@example.com"

    async def test_edit_unknown_invitation(self, client: AsyncClient, coach: User):
        response = await client.patch(
            "/api/invitations/00000000-0000-0000-0000-000000000000",
            json={"email": "x@example.com"},
            headers=auth_headers(coach),
        )
        assert response.status_code == 404


@pytest.mark.asyncio
class TestListAndDeleteInvitations:
    """GET and DELETE /api/invitations"""

    async def test_list_returns_only_own_invitations(
        self, client: AsyncClient, coach: User, academy_admin: User, batch: Batch
    ):
        await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))
        await client.post("/api/invitations", json=coach_invite(batch), headers=auth_headers(academy_admin))

        response = await client.get("/api/invitations", headers=auth_headers(coach))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert [item["email"] for item in data["items"]] == ["student@example.com"]

    async def test_list_filters_and_paginates(
        self, client: AsyncClient, super_admin: User, batch: Batch
    ):
        headers = auth_headers(super_admin)
        for i in range(3):
            await client.post("/api/invitations", json=student_invite(batch, email=f"s{i}@example.com"), headers=headers)
        await client.post("/api/invitations", json=academy_invite(), headers=headers)

        response = await client.get("/api/invitations", params={"type": "BATCH_STUDENT", "limit": 2}, headers=headers)
        data = response.json()
        assert data["total"] == 3
        assert len(data["items"]) == 2

        response = await client.get("/api/invitations", params={"query": "founder"}, headers=headers)
        assert [item["email"] for item in response.json()["items"]] == ["founder@example.com"]

    async def test_get_invitation(self, client: AsyncClient, coach: User, batch: Batch):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        response = await client.get(f"/api/invitations/{created.json()['id']}", headers=auth_headers(coach))

        assert response.status_code == 200
        assert response.json()["first_name"] == "Sam"

    async def test_delete_by_creator(
        self, client: AsyncClient, db: AsyncSession, coach: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        response = await client.delete(f"/api/invitations/{created.json()['id']}", headers=auth_headers(coach))

        assert response.status_code == 204
        assert await count(db, Invitation) == 0
        result = await db.execute(select(AuditEvent).where(AuditEvent.action == AuditAction.INVITATION_DELETE))
        assert result.scalar_one_or_none() is not None

    async def test_delete_by_non_creator_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, coach: User, academy_admin: User, batch: Batch
    ):
        created = await client.post("/api/invitations", json=student_invite(batch), headers=auth_headers(coach))

        response = await client.delete(
            f"/api/invitations/{created.json()['id']}", headers=auth_headers(academy_admin)
        )

        assert response.status_code == 403
        assert await count(db, Invitation) == 1
