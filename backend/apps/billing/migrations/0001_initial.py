import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

HUB_CHOICES = [(1, "PercyTech"), (2, "Gnymble"), (3, "PercyMD"), (4, "PercyText")]
CUSTOMER_TYPE_CHOICES = [("company", "Company"), ("individual", "Individual")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("companies", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("hub", models.PositiveSmallIntegerField(choices=HUB_CHOICES, db_index=True)),
                (
                    "customer_type",
                    models.CharField(choices=CUSTOMER_TYPE_CHOICES, default="company", max_length=20),
                ),
                ("billing_email", models.EmailField(blank=True, max_length=254)),
                (
                    "stripe_customer_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe customer ID, e.g. 'cus_xxx'",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("stripe_subscription_id", models.CharField(blank=True, db_index=True, max_length=255)),
                ("last_checkout_session_id", models.CharField(blank=True, max_length=255)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid"), ("payment_failed", "Payment Failed")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("retry_eligible", models.BooleanField(default=False)),
                ("last_failed_invoice_id", models.CharField(blank=True, max_length=255)),
                ("next_payment_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("last_payment_at", models.DateTimeField(blank=True, null=True)),
                (
                    "subscription_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("active", "Active"),
                            ("past_due", "Past Due"),
                            ("canceled", "Canceled"),
                            ("incomplete", "Incomplete"),
                            ("incomplete_expired", "Incomplete Expired"),
                            ("trialing", "Trialing"),
                            ("unpaid", "Unpaid"),
                            ("paused", "Paused"),
                        ],
                        max_length=50,
                    ),
                ),
                ("subscription_tier", models.CharField(blank=True, max_length=50)),
                ("current_period_end", models.DateTimeField(blank=True, null=True)),
                ("cancel_at_period_end", models.BooleanField(default=False)),
                ("payment_event_at", models.DateTimeField(blank=True, null=True)),
                ("subscription_event_at", models.DateTimeField(blank=True, null=True)),
                (
                    "company",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customer",
                        to="companies.company",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="billing_customers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Lead",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("email", models.EmailField(max_length=254)),
                ("hub", models.PositiveSmallIntegerField(choices=HUB_CHOICES)),
                (
                    "status",
                    models.CharField(
                        choices=[("new", "New"), ("abandoned", "Abandoned"), ("converted", "Converted")],
                        db_index=True,
                        default="new",
                        max_length=20,
                    ),
                ),
                ("needs_followup", models.BooleanField(default=False)),
                ("source", models.CharField(default="checkout", max_length=50)),
                ("first_name", models.CharField(blank=True, max_length=150)),
                ("last_name", models.CharField(blank=True, max_length=150)),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("phone_number", models.CharField(blank=True, max_length=20)),
                (
                    "customer_type",
                    models.CharField(choices=CUSTOMER_TYPE_CHOICES, default="company", max_length=20),
                ),
                ("stripe_customer_id", models.CharField(blank=True, max_length=255)),
                ("stripe_session_id", models.CharField(blank=True, max_length=255)),
                ("stripe_subscription_id", models.CharField(blank=True, max_length=255)),
                ("converted_at", models.DateTimeField(blank=True, null=True)),
                ("abandoned_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [models.UniqueConstraint(fields=("email", "hub"), name="unique_lead_email_hub")],
            },
        ),
    ]
