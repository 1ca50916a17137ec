"""
Admin configuration for billing app.
"""

from django.contrib import admin

from apps.billing.models import Customer, Lead, Payment


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    """Billing records. Payment fields are synced from Stripe, not edited here."""

    list_display = [
        "id",
        "company",
        "billing_email",
        "hub",
        "payment_status",
        "subscription_status",
        "subscription_tier",
        "retry_eligible",
    ]
    list_filter = ["hub", "payment_status", "subscription_status", "retry_eligible"]
    search_fields = ["billing_email", "stripe_customer_id", "stripe_subscription_id", "company__public_name"]
    raw_id_fields = ["company", "user"]
    readonly_fields = [
        "stripe_customer_id",
        "stripe_subscription_id",
        "last_checkout_session_id",
        "payment_status",
        "subscription_status",
        "subscription_tier",
        "current_period_end",
        "last_failed_invoice_id",
        "next_payment_attempt_at",
        "last_payment_at",
        "payment_event_at",
        "subscription_event_at",
        "created_at",
        "updated_at",
    ]


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    """Checkout leads. Filter on needs_followup for abandoned checkouts."""

    list_display = ["email", "hub", "status", "needs_followup", "company_name", "abandoned_at", "converted_at"]
    list_filter = ["hub", "status", "needs_followup"]
    search_fields = ["email", "company_name", "stripe_session_id"]
    readonly_fields = [
        "status",
        "stripe_customer_id",
        "stripe_session_id",
        "stripe_subscription_id",
        "converted_at",
        "abandoned_at",
        "created_at",
        "updated_at",
    ]
    actions = ["mark_followed_up"]

    @admin.action(description="Mark as followed up")
    def mark_followed_up(self, request, queryset) -> None:
        queryset.update(needs_followup=False)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Invoice payment history, written by the Stripe webhook."""

    list_display = ["stripe_invoice_id", "customer", "amount", "currency", "status", "event_at"]
    list_filter = ["status", "currency"]
    search_fields = ["stripe_invoice_id", "stripe_payment_intent_id", "customer__billing_email"]
    raw_id_fields = ["customer"]
    readonly_fields = [
        "stripe_invoice_id",
        "stripe_payment_intent_id",
        "amount",
        "currency",
        "status",
        "event_at",
        "created_at",
        "updated_at",
    ]
