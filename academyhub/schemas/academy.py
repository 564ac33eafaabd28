"""Pydantic schemas for academy and batch endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from academyhub.models.enums import AcademyStatus


class AcademyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    status: AcademyStatus
    created_at: datetime


class AcademyListResponse(BaseModel):
    items: list[AcademyResponse]
    total: int
    page: int
    limit: int


class CreateBatchRequest(BaseModel):
    """Request schema for POST /batches.

    ``warning_cutoff`` is the enrollment count at which a capacity warning
    is logged; it may not exceed the capacity.
    """

    model_config = ConfigDict(populate_by_name=True)

    academy_id: UUID = Field(..., alias="academyId")
    student_capacity: int = Field(..., alias="studentCapacity", gt=0, le=1000)
    warning_cutoff: int | None = Field(None, alias="warningCutoff", gt=0)
    description: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _check_cutoff(self) -> "CreateBatchRequest":
        if self.warning_cutoff is not None and self.warning_cutoff > self.student_capacity:
            raise ValueError("warningCutoff cannot exceed studentCapacity")
        return self


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    batch_code: str
    academy_id: UUID
    student_capacity: int
    warning_cutoff: int | None = None
    description: str | None = None
    created_at: datetime


class BatchListResponse(BaseModel):
    items: list[BatchResponse]
    total: int
    page: int
    limit: int
