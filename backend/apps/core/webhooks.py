"""
Idempotency bookkeeping for inbound webhooks.
"""

from django.db import IntegrityError, transaction

from apps.core.logging import get_logger
from apps.core.models import ProcessedWebhook

logger = get_logger(__name__)


def mark_webhook_processed(source: str, event_id: str) -> bool:
    """
    Record a webhook event as applied.

    Relies on the (source, event_id) unique constraint, so two concurrent
    deliveries of the same event cannot both claim it. The insert runs in a
    savepoint so a lost race does not break the caller's transaction.

    Returns:
        True if this call claimed the event, False if it was already claimed.
    """
    try:
        with transaction.atomic():
            ProcessedWebhook.objects.create(source=source, event_id=event_id)
        return True
    except IntegrityError:
        logger.debug("webhook_already_processed", source=source, event_id=event_id)
        return False
