"""
Schemas for signup endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class CreateSignupRequest(BaseModel):
    """Signup form submission."""

    hub: int = Field(..., description="Hub ID (1 PercyTech, 2 Gnymble, 3 PercyMD, 4 PercyText)", examples=[2])
    customer_type: Literal["company", "individual"] = "company"
    auth_method: Literal["sms", "email"] = "sms"
    company_name: str = Field("", max_length=255)
    first_name: str = Field(..., max_length=150)
    last_name: str = Field(..., max_length=150)
    email: str = Field(..., max_length=254, examples=["jane@example.com"])
    phone_number: str = Field(
        ...,
        min_length=8,
        max_length=20,
        description="Phone number in E.164 format (e.g., +15551234567)",
        examples=["+15551234567"],
    )


class CreateSignupResponse(BaseModel):
    """Signup accepted. The code itself is never returned."""

    signup_id: UUID
    expires_at: datetime
    auth_method: str
    message: str


class VerifyCodeRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=10, examples=["482913"])


class VerifyCodeResponse(BaseModel):
    verified: bool
    signup_id: UUID
    hub: int
    customer_type: str


class ResendCodeResponse(BaseModel):
    success: bool
    expires_at: datetime
    message: str
