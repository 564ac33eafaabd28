"""Create academy, user and invitation tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ('SUPER_ADMIN', 'ADMIN', 'COACH', 'STUDENT', 'SUBSCRIBER')
AUDIT_ACTIONS = (
    'user.create', 'user.login', 'user.password_reset',
    'invitation.create', 'invitation.update', 'invitation.accept',
    'invitation.delete', 'invitation.expire',
    'academy.create', 'batch.create',
)


def _id_column() -> sa.Column:
    return sa.Column(
        'id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def upgrade() -> None:
    """Create academy tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    op.execute(f"CREATE TYPE user_role AS ENUM {USER_ROLES}")
    op.execute("CREATE TYPE academy_status AS ENUM ('ACTIVE', 'INACTIVE')")
    op.execute("CREATE TYPE invitation_type AS ENUM ('CREATE_ACADEMY', 'BATCH_COACH', 'BATCH_STUDENT')")
    op.execute("CREATE TYPE invitation_status AS ENUM ('PENDING', 'ACCEPTED')")
    op.execute(f"CREATE TYPE audit_action AS ENUM {AUDIT_ACTIONS}")

    op.create_table(
        'profiles',
        _id_column(),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('middle_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('dob', sa.Date, nullable=True),
        sa.Column('phone_number', sa.String(32), nullable=True),
        sa.Column('address_line1', sa.String(255), nullable=True),
        sa.Column('address_line2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('parent_name', sa.String(200), nullable=True),
        sa.Column('parent_email', sa.String(255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'users',
        _id_column(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('has_password', sa.Boolean, nullable=False, server_default='false'),
        sa.Column(
            'role',
            postgresql.ENUM(*USER_ROLES, name='user_role', create_type=False),
            nullable=False,
            server_default='SUBSCRIBER',
        ),
        sa.Column('sub_role', sa.String(100), nullable=True),
        sa.Column('code', sa.String(20), nullable=True, unique=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            'profile_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('profiles.id', ondelete='SET NULL'),
            nullable=True,
            unique=True,
        ),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'academies',
        _id_column(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM('ACTIVE', 'INACTIVE', name='academy_status', create_type=False),
            nullable=False,
            server_default='ACTIVE',
        ),
        *_timestamps(),
        sa.CheckConstraint('LENGTH(name) > 0', name='academy_name_not_empty'),
    )
    op.create_index('ix_academies_name', 'academies', ['name'], unique=True)

    op.create_table(
        'batches',
        _id_column(),
        sa.Column('batch_code', sa.String(20), nullable=False, unique=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('student_capacity', sa.Integer, nullable=False),
        sa.Column('warning_cutoff', sa.Integer, nullable=True),
        sa.Column(
            'academy_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('academies.id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_timestamps(),
        sa.CheckConstraint('student_capacity > 0', name='batch_capacity_positive'),
    )
    op.create_index('ix_batches_academy_id', 'batches', ['academy_id'])

    for name, owner, owner_table in (
        ('academy_admins', 'academy_id', 'academies'),
        ('batch_coaches', 'batch_id', 'batches'),
        ('batch_students', 'batch_id', 'batches'),
    ):
        op.create_table(
            name,
            sa.Column(
                owner,
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey(f'{owner_table}.id', ondelete='CASCADE'),
                primary_key=True,
            ),
            sa.Column(
                'user_id',
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey('users.id', ondelete='CASCADE'),
                primary_key=True,
            ),
        )

    op.create_table(
        'invitations',
        _id_column(),
        sa.Column(
            'type',
            postgresql.ENUM(
                'CREATE_ACADEMY', 'BATCH_COACH', 'BATCH_STUDENT', name='invitation_type', create_type=False
            ),
            nullable=False,
        ),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('data', postgresql.JSON, nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM('PENDING', 'ACCEPTED', name='invitation_status', create_type=False),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            'created_by_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index('ix_invitations_expires_at', 'invitations', ['expires_at'])
    op.create_index('ix_invitations_created_by_id', 'invitations', ['created_by_id'])
    # One pending invitation per email
    op.create_index(
        'uq_invitations_pending_email',
        'invitations',
        ['email'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        'audit_events',
        _id_column(),
        sa.Column(
            'actor_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'action',
            postgresql.ENUM(*AUDIT_ACTIONS, name='audit_action', create_type=False),
            nullable=False,
        ),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('diff_json', postgresql.JSON, nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_audit_events_actor_id', 'audit_events', ['actor_id'])
    op.create_index('ix_audit_events_entity_id', 'audit_events', ['entity_id'])
    op.create_index('idx_audit_events_created_at', 'audit_events', ['created_at'])

    # Audit rows are append-only
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_delete()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Audit events cannot be deleted';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER prevent_audit_delete
        BEFORE DELETE ON audit_events
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_delete();
    """)


def downgrade() -> None:
    """Drop academy tables."""
    op.execute('DROP TRIGGER IF EXISTS prevent_audit_delete ON audit_events')
    op.execute('DROP FUNCTION IF EXISTS prevent_audit_delete()')

    op.drop_table('audit_events')
    op.drop_table('invitations')
    op.drop_table('batch_students')
    op.drop_table('batch_coaches')
    op.drop_table('academy_admins')
    op.drop_table('batches')
    op.drop_table('academies')
    op.drop_table('users')
    op.drop_table('profiles')

    op.execute('DROP TYPE IF EXISTS audit_action')
    op.execute('DROP TYPE IF EXISTS invitation_status')
    op.execute('DROP TYPE IF EXISTS invitation_type')
    op.execute('DROP TYPE IF EXISTS academy_status')
    op.execute('DROP TYPE IF EXISTS user_role')
