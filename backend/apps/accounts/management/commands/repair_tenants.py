"""
Management command to backfill memberships and billing shells.

Provisioning creates these best-effort; run this periodically to repair
tenants where that step failed.
Example: ./manage.py repair_tenants --dry-run
"""

from django.core.management.base import BaseCommand

from apps.accounts.services import repair_tenants


class Command(BaseCommand):
    help = "Create missing owner memberships and billing shells for provisioned tenants"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be created without writing anything",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        report = repair_tenants(dry_run=dry_run)

        summary = f"{report.memberships_created} memberships, {report.customers_created} billing records"
        if dry_run:
            self.stdout.write(self.style.WARNING(f"[DRY RUN] Would create {summary}"))
            return

        self.stdout.write(self.style.SUCCESS(f"Created {summary}"))
        if report.failures:
            self.stdout.write(self.style.ERROR(f"Failed to repair profiles: {report.failures}"))
