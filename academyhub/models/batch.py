"""Batch model."""
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from academyhub.models.associations import batch_coaches, batch_students
from academyhub.models.base import BaseModel


class Batch(BaseModel):
    """A cohort of students under one or more coaches within an academy."""

    __tablename__ = "batches"

    batch_code = Column(
        String(20),
        nullable=False,
        unique=True
    )
    description = Column(Text, nullable=True)
    student_capacity = Column(Integer, nullable=False)
    warning_cutoff = Column(Integer, nullable=True)
    academy_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("academies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Relationships
    academy = relationship("Academy", back_populates="batches")
    coaches = relationship(
        "User",
        secondary=batch_coaches,
        back_populates="coach_of_batches"
    )
    students = relationship(
        "User",
        secondary=batch_students,
        back_populates="student_of_batches"
    )

    __table_args__ = (
        CheckConstraint("student_capacity > 0", name="batch_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Batch(id={self.id}, batch_code={self.batch_code})>"
