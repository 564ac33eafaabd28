"""Association tables for many-to-many memberships."""

from sqlalchemy import Column, ForeignKey, Table, Uuid

from academyhub.models.base import Base

academy_admins = Table(
    "academy_admins",
    Base.metadata,
    Column("academy_id", Uuid(as_uuid=True), ForeignKey("academies.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

batch_coaches = Table(
    "batch_coaches",
    Base.metadata,
    Column("batch_id", Uuid(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

batch_students = Table(
    "batch_students",
    Base.metadata,
    Column("batch_id", Uuid(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)
