"""
Billing API schemas - request/response types for checkout endpoints.
"""

from typing import Literal

from ninja import Schema


class CheckoutSessionRequest(Schema):
    """
    Request to create a Stripe Checkout session.

    Omit ``email`` for the payment-first flow.
    """

    hub: int
    success_url: str
    cancel_url: str
    price_tier: str = ""
    customer_type: Literal["company", "individual"] = "company"
    email: str = ""
    company_id: int | None = None
    user_id: int | None = None
    signup_id: str = ""


class CheckoutSessionResponse(Schema):
    """Where to send the payer."""

    session_id: str
    checkout_url: str
    mode: str  # 'identified' or 'payment_first'


class SyncCheckoutRequest(Schema):
    session_id: str


class SyncCheckoutResponse(Schema):
    status: str  # 'open', 'complete', 'expired'
