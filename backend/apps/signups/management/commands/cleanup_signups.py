"""
Management command to expire and purge stale signup requests.

Run periodically via cron or scheduled task.
Example: ./manage.py cleanup_signups --hours 24
"""

from django.core.management.base import BaseCommand

from apps.signups.services import cleanup_expired_signups


class Command(BaseCommand):
    help = "Expire lapsed signup requests and delete unverified ones older than specified hours"

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=24,
            help="Delete unverified requests that expired more than this many hours ago (default: 24)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        hours = options["hours"]

        if options["dry_run"]:
            count = cleanup_expired_signups(hours=hours, dry_run=True)
            self.stdout.write(self.style.WARNING(f"[DRY RUN] Would delete {count} signup requests"))
            return

        deleted = cleanup_expired_signups(hours=hours)
        self.stdout.write(self.style.SUCCESS(f"Successfully deleted {deleted} signup requests"))
