"""
Stripe webhook handler.

A plain Django view (not Django Ninja) so the raw request body is
available for signature verification.
"""

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.billing.reconciliation import WebhookReconciler
from apps.billing.stripe_client import get_stripe
from apps.core.exceptions import SignatureInvalid
from apps.core.logging import get_logger
from config.settings.base import settings

logger = get_logger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Handle Stripe webhook events.

    400 for an unverifiable event (Stripe will not fix it by retrying),
    500 when a handler fails so Stripe retries with backoff, 200 otherwise
    including duplicates and event types we do not handle.
    """
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("stripe_webhook_missing_signature")
        return HttpResponse(status=400)

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("stripe_webhook_secret_not_configured")
        return HttpResponse(status=500)

    reconciler = WebhookReconciler(get_stripe(), settings.STRIPE_WEBHOOK_SECRET)
    try:
        event = reconciler.verify(request.body, sig_header)
    except SignatureInvalid:
        return HttpResponse(status=400)

    logger.info("stripe_webhook_received", event_id=event["id"], event_type=event["type"])

    try:
        ack = reconciler.process(event)
    except Exception:
        logger.exception("stripe_webhook_handler_error", event_id=event["id"], event_type=event["type"])
        # Return 500 so Stripe will retry with exponential backoff
        return HttpResponse(status=500)

    return JsonResponse({"received": True, "outcome": ack.outcome})
