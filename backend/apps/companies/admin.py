"""
Admin configuration for companies app.
"""

from django.contrib import admin

from apps.companies.models import AccountNumberSequence, Company


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """Admin for tenant companies."""

    list_display = ["account_number", "public_name", "hub", "customer_type", "is_active", "created_at"]
    list_filter = ["hub", "customer_type", "is_active"]
    search_fields = ["account_number", "public_name", "legal_name"]
    readonly_fields = ["account_number", "source_signup", "created_by", "created_at", "updated_at"]


@admin.register(AccountNumberSequence)
class AccountNumberSequenceAdmin(admin.ModelAdmin):
    """Read-only view of the account number counters."""

    list_display = ["hub", "kind", "last_value"]
    readonly_fields = ["hub", "kind", "last_value"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
