"""
Billing API endpoints.

Opens Stripe Checkout sessions and settles them on return.
"""

from django.http import HttpRequest
from ninja import Router

from apps.billing.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SyncCheckoutRequest,
    SyncCheckoutResponse,
)
from apps.billing.services import CheckoutOrchestrator, CheckoutRequest
from apps.billing.stripe_client import get_stripe
from apps.core.schemas import ErrorResponse

router = Router(tags=["billing"])


def get_orchestrator() -> CheckoutOrchestrator:
    return CheckoutOrchestrator(get_stripe())


@router.post(
    "/checkout",
    response={200: CheckoutSessionResponse, 404: ErrorResponse, 422: ErrorResponse, 503: ErrorResponse},
    operation_id="createCheckoutSession",
    summary="Create Stripe Checkout session",
)
def create_checkout(request: HttpRequest, payload: CheckoutSessionRequest) -> CheckoutSessionResponse:
    """
    Create a Stripe Checkout session for subscribing.

    Returns URL to redirect the payer to Stripe Checkout.
    """
    handle = get_orchestrator().create_checkout(CheckoutRequest(**payload.model_dump()))
    return CheckoutSessionResponse(session_id=handle.session_id, checkout_url=handle.url, mode=handle.mode)


@router.post(
    "/checkout/sync",
    response={200: SyncCheckoutResponse, 404: ErrorResponse, 503: ErrorResponse},
    operation_id="syncCheckoutSession",
    summary="Sync a Checkout session from Stripe",
)
def sync_checkout(request: HttpRequest, payload: SyncCheckoutRequest) -> SyncCheckoutResponse:
    """
    Apply a finished Checkout session without waiting for its webhook.

    Called from the success page.
    """
    status = get_orchestrator().sync_checkout_session(payload.session_id)
    return SyncCheckoutResponse(status=status)
