"""
Companies models - the tenant root.
"""

from django.conf import settings
from django.db import models

from apps.core.hubs import Hub
from apps.core.models import TimestampedModel


class CustomerType(models.TextChoices):
    COMPANY = "company", "Company"
    INDIVIDUAL = "individual", "Individual"


class Company(TimestampedModel):
    """
    A paying tenant.

    Created once per verified signup. ``source_signup`` is unique, so two
    concurrent provisioning attempts for the same signup cannot both create
    a company.
    """

    hub = models.PositiveSmallIntegerField(choices=Hub.choices, db_index=True)
    public_name = models.CharField(max_length=255)
    legal_name = models.CharField(max_length=255, blank=True)
    account_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Hub-prefixed account number, e.g. 'GNYMBLE-000042'",
    )
    customer_type = models.CharField(
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.COMPANY,
    )
    is_active = models.BooleanField(default=True)

    source_signup = models.OneToOneField(
        "signups.SignupRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="company",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="companies_created",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "companies"

    def __str__(self) -> str:
        return f"{self.public_name} ({self.account_number})"


class AccountNumberSequence(models.Model):
    """
    Per-hub counter backing account numbers.

    Incremented under a row lock, so numbers are never handed out twice
    even when provisioning runs on several workers.
    """

    class Kind(models.TextChoices):
        COMPANY = "company", "Company"
        USER = "user", "User"

    hub = models.PositiveSmallIntegerField(choices=Hub.choices)
    kind = models.CharField(max_length=20, choices=Kind.choices)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["hub", "kind"], name="unique_account_sequence"),
        ]

    def __str__(self) -> str:
        return f"{self.hub}/{self.kind}: {self.last_value}"
