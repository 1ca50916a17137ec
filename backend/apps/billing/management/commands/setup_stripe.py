"""
Management command to set up Stripe products and prices.

Run once per environment to create one monthly price per subscription tier.
Usage: python manage.py setup_stripe --tier starter:2900 --tier professional:9900
"""

import json

from django.core.management.base import BaseCommand, CommandError

from apps.billing.stripe_client import get_stripe
from config.settings.base import settings

DEFAULT_TIERS = ["starter:2900", "professional:9900"]
APP_TAG = "sms-hub"


def parse_tier(value: str) -> tuple[str, int]:
    name, _, cents = value.partition(":")
    if not name or not cents.isdigit():
        raise CommandError(f"Invalid tier '{value}'. Use name:cents, e.g. starter:2900")
    return name, int(cents)


class Command(BaseCommand):
    help = "Set up Stripe products and monthly prices for each subscription tier"

    def add_arguments(self, parser):
        parser.add_argument(
            "--tier",
            action="append",
            dest="tiers",
            help="Tier as name:monthly_cents (repeatable, default: starter:2900 professional:9900)",
        )
        parser.add_argument(
            "--currency",
            type=str,
            default="usd",
            help="Currency code (default: usd)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Create new prices even if matching ones exist",
        )

    def handle(self, *args, **options):
        if not settings.STRIPE_SECRET_KEY:
            raise CommandError("STRIPE_SECRET_KEY not set. Add it to your .env file first.")

        stripe = get_stripe()
        currency = options["currency"]
        tiers = [parse_tier(value) for value in (options["tiers"] or DEFAULT_TIERS)]
        prices: dict[str, str] = {}

        for tier, cents in tiers:
            self.stdout.write(f"Setting up tier '{tier}': {cents} {currency.upper()} cents/month")

            if not options["force"]:
                existing = stripe.Price.search(
                    query=f"metadata['app']:'{APP_TAG}' AND metadata['tier']:'{tier}' AND active:'true'"
                )
                if existing.data:
                    prices[tier] = existing.data[0].id
                    self.stdout.write(self.style.WARNING(f"Found existing price: {existing.data[0].id}"))
                    continue

            product = stripe.Product.create(
                name=f"SMS Hub {tier.title()}",
                description=f"{tier.title()} monthly subscription",
                metadata={"app": APP_TAG, "tier": tier},
            )
            price = stripe.Price.create(
                product=product.id,
                unit_amount=cents,
                currency=currency,
                recurring={"interval": "month"},
                metadata={"app": APP_TAG, "tier": tier},
            )
            prices[tier] = price.id
            self.stdout.write(f"Created price: {price.id}")

        self.stdout.write(
            self.style.SUCCESS(f"\nStripe setup complete. Add this to your .env:\n\nSTRIPE_PRICES='{json.dumps(prices)}'\n")
        )
        self.stdout.write(
            self.style.NOTICE(
                "\nWebhook endpoint: https://your-domain.com/webhooks/stripe/\n"
                "Events: checkout.session.completed, checkout.session.expired, "
                "customer.subscription.*, invoice.paid, invoice.payment_failed\n"
            )
        )
