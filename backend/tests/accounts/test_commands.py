"""
Tests for the repair_tenants management command.
"""

from io import StringIO

import pytest
from django.core.management import call_command

from apps.accounts.models import Membership
from tests.accounts.factories import UserProfileFactory


@pytest.mark.django_db
class TestRepairTenantsCommand:
    def test_repairs(self) -> None:
        UserProfileFactory()
        out = StringIO()

        call_command("repair_tenants", stdout=out)

        assert "Created 1 memberships, 1 billing records" in out.getvalue()
        assert Membership.objects.count() == 1

    def test_dry_run(self) -> None:
        UserProfileFactory()
        out = StringIO()

        call_command("repair_tenants", "--dry-run", stdout=out)

        assert "[DRY RUN] Would create 1 memberships, 1 billing records" in out.getvalue()
        assert Membership.objects.count() == 0
