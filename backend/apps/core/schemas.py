"""
Core schemas - shared Pydantic models for API responses.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    detail: str = Field(..., description="Human-readable error message")
    code: str = Field("error", description="Stable machine-readable error code")
    retryable: bool = Field(False, description="Whether the same request may be retried")

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Verification code has expired. Please request a new one.",
                "code": "expired",
                "retryable": False,
            }
        }
    }
