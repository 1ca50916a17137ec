"""
Schemas for account provisioning endpoints.
"""

from uuid import UUID

from pydantic import BaseModel


class ProvisionRequest(BaseModel):
    signup_id: UUID


class ProvisionResponse(BaseModel):
    """Identifiers of the tenant bundle. ``created`` is False on a repeat call."""

    created: bool
    company_id: int
    account_number: str
    user_id: int
    profile_id: int
    membership_id: int | None = None
    customer_id: int | None = None
