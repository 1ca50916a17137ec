"""
Core models - shared base classes and webhook bookkeeping.
"""

from django.db import models


class TimestampedModel(models.Model):
    """
    Abstract base model with created_at/updated_at timestamps.

    Tenant entities inherit from this so operators can see when a row was
    first materialised and last touched by a webhook.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProcessedWebhook(models.Model):
    """
    Marker for a webhook event whose effects have been applied.

    Written in the same transaction as the handler's writes, so a failed
    handler leaves no marker and the provider's retry runs it again.
    """

    source = models.CharField(max_length=50)
    event_id = models.CharField(max_length=255)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["source", "event_id"], name="unique_processed_webhook"),
        ]
        indexes = [
            models.Index(fields=["processed_at"], name="processed_webhook_at_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.source}:{self.event_id}"
