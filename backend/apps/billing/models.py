"""
Billing models - local customer records and checkout leads.
"""

from django.conf import settings
from django.db import models

from apps.companies.models import CustomerType
from apps.core.hubs import Hub
from apps.core.models import TimestampedModel


class SubscriptionStatus(models.TextChoices):
    """Stripe subscription statuses."""

    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"
    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete Expired"
    TRIALING = "trialing", "Trialing"
    UNPAID = "unpaid", "Unpaid"
    PAUSED = "paused", "Paused"


# A subscription in one of these states never comes back
TERMINAL_SUBSCRIPTION_STATUSES = frozenset({SubscriptionStatus.CANCELED, SubscriptionStatus.INCOMPLETE_EXPIRED})


class Customer(TimestampedModel):
    """
    Billing record for a tenant.

    Created as a ``pending`` shell at provisioning time, or by the webhook
    reconciler for payment-first checkouts (no company yet). Stripe is the
    source of truth for payment state; fields here are synced from webhooks
    and only ever move forward in event time (see the ``*_event_at``
    watermarks).
    """

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        PAYMENT_FAILED = "payment_failed", "Payment Failed"

    company = models.OneToOneField(
        "companies.Company",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="customer",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="billing_customers",
    )
    hub = models.PositiveSmallIntegerField(choices=Hub.choices, db_index=True)
    customer_type = models.CharField(
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.COMPANY,
    )
    billing_email = models.EmailField(blank=True)

    # Stripe
    stripe_customer_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe customer ID, e.g. 'cus_xxx'",
    )
    stripe_subscription_id = models.CharField(max_length=255, blank=True, db_index=True)
    last_checkout_session_id = models.CharField(max_length=255, blank=True)

    # Payment state
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    retry_eligible = models.BooleanField(default=False)
    last_failed_invoice_id = models.CharField(max_length=255, blank=True)
    next_payment_attempt_at = models.DateTimeField(null=True, blank=True)
    last_payment_at = models.DateTimeField(null=True, blank=True)

    # Subscription state
    subscription_status = models.CharField(
        max_length=50,
        choices=SubscriptionStatus.choices,
        blank=True,
    )
    subscription_tier = models.CharField(max_length=50, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)
    cancel_at_period_end = models.BooleanField(default=False)

    # Creation time of the newest Stripe event applied to each group of fields
    payment_event_at = models.DateTimeField(null=True, blank=True)
    subscription_event_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        owner = self.company.public_name if self.company_id else self.billing_email
        return f"{owner} - {self.payment_status}"

    @property
    def has_active_subscription(self) -> bool:
        return self.subscription_status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


class Lead(TimestampedModel):
    """
    A checkout attempt, keyed by (email, hub).

    Status only moves forward: new -> abandoned -> converted. Abandoned
    leads are flagged for sales follow-up.
    """

    class Status(models.TextChoices):
        NEW = "new", "New"
        ABANDONED = "abandoned", "Abandoned"
        CONVERTED = "converted", "Converted"

    STATUS_RANK = {Status.NEW: 0, Status.ABANDONED: 1, Status.CONVERTED: 2}

    email = models.EmailField()
    hub = models.PositiveSmallIntegerField(choices=Hub.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW, db_index=True)
    needs_followup = models.BooleanField(default=False)
    source = models.CharField(max_length=50, default="checkout")

    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    customer_type = models.CharField(
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.COMPANY,
    )

    stripe_customer_id = models.CharField(max_length=255, blank=True)
    stripe_session_id = models.CharField(max_length=255, blank=True)
    stripe_subscription_id = models.CharField(max_length=255, blank=True)

    converted_at = models.DateTimeField(null=True, blank=True)
    abandoned_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["email", "hub"], name="unique_lead_email_hub"),
        ]

    def __str__(self) -> str:
        return f"{self.email} ({self.status})"

    @classmethod
    def rank(cls, status: str) -> int:
        return cls.STATUS_RANK[status]


class Payment(TimestampedModel):
    """
    Payment history, one row per Stripe invoice.

    Upserted from invoice webhooks; the newest event for an invoice decides
    its status.
    """

    class Status(models.TextChoices):
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="payments")
    stripe_invoice_id = models.CharField(max_length=255, unique=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True)
    amount = models.PositiveIntegerField(default=0, help_text="Amount in the smallest currency unit")
    currency = models.CharField(max_length=3, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, db_index=True)
    event_at = models.DateTimeField(help_text="Creation time of the Stripe event that set the status")

    class Meta:
        ordering = ["-event_at"]

    def __str__(self) -> str:
        return f"{self.stripe_invoice_id} {self.amount} {self.currency} ({self.status})"
