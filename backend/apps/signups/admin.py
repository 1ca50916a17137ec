"""
Admin configuration for signups app.
"""

from django.contrib import admin

from apps.core.utils import mask_phone
from apps.signups.models import SignupRequest


@admin.register(SignupRequest)
class SignupRequestAdmin(admin.ModelAdmin):
    """Admin for signup requests. Codes are never shown."""

    list_display = [
        "id",
        "hub",
        "email",
        "phone_number_masked",
        "auth_method",
        "state",
        "attempts",
        "resend_count",
        "created_at",
        "expires_at",
    ]
    list_filter = ["hub", "state", "auth_method", "customer_type", "created_at"]
    search_fields = ["email", "company_name", "last_name"]
    exclude = ["code_hash"]
    readonly_fields = [
        "state",
        "attempts",
        "resend_count",
        "delivery_message_id",
        "ip_address",
        "created_at",
        "updated_at",
        "expires_at",
        "code_sent_at",
        "verified_at",
    ]

    def phone_number_masked(self, obj: SignupRequest) -> str:
        """Show only last 4 digits of phone for privacy."""
        return mask_phone(obj.phone_number)

    phone_number_masked.short_description = "Phone"  # type: ignore[attr-defined]
