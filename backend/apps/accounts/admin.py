"""
Admin configuration for accounts app.
"""

from django.contrib import admin

from apps.accounts.models import Membership, User, UserProfile
from apps.core.utils import mask_phone


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ["email", "name", "is_active", "is_staff", "created_at"]
    list_filter = ["is_active", "is_staff"]
    search_fields = ["email", "name"]
    exclude = ["password"]
    readonly_fields = ["last_login", "created_at", "updated_at"]


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    """Admin for user profiles."""

    list_display = ["account_number", "user", "company", "hub", "phone_number_masked", "is_company_admin"]
    list_filter = ["hub", "is_company_admin"]
    search_fields = ["account_number", "user__email", "last_name", "company__public_name"]
    raw_id_fields = ["user", "company", "signup_request"]
    readonly_fields = ["account_number", "created_at", "updated_at"]

    def phone_number_masked(self, obj: UserProfile) -> str:
        """Show only last 4 digits of phone for privacy."""
        return mask_phone(obj.phone_number)

    phone_number_masked.short_description = "Phone"  # type: ignore[attr-defined]


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ["user", "company", "hub", "role", "is_active", "revoked_at"]
    list_filter = ["hub", "role", "is_active"]
    search_fields = ["user__email", "company__public_name"]
    raw_id_fields = ["user", "company"]
    actions = ["revoke_memberships"]

    @admin.action(description="Revoke selected memberships")
    def revoke_memberships(self, request, queryset) -> None:
        for membership in queryset:
            membership.revoke()
