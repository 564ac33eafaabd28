"""Error response schema shared by every endpoint."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Rendered for every ``AppError`` (4xx, 5xx) across the API.
    """

    error: str = Field(
        ...,
        description="Error type identifier",
        examples=["expired", "version_mismatch", "conflict"]
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Invitation has expired.", "An invitation has already been sent to this email."]
    )
    details: Optional[dict] = Field(
        None,
        description="Additional error context",
        examples=[{"batchId": "Batch is full"}]
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "version_mismatch",
                    "message": "This invitation link is no longer valid. Use the most recent invitation email."
                },
                {
                    "error": "expired",
                    "message": "Invitation has expired."
                },
                {
                    "error": "mail_delivery_failed",
                    "message": "Failed to send invitation email. The invitation was not created."
                }
            ]
        }
    )
