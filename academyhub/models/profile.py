"""Profile model."""
from sqlalchemy import Column, Date, String
from sqlalchemy.orm import relationship

from academyhub.models.base import BaseModel


class Profile(BaseModel):
    """Personal details owned by exactly one user."""

    __tablename__ = "profiles"

    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=True)
    phone_number = Column(String(32), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    parent_name = Column(String(200), nullable=True)
    parent_email = Column(String(255), nullable=True)

    user = relationship("User", back_populates="profile", uselist=False)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.middle_name, self.last_name) if p)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, name={self.full_name})>"
