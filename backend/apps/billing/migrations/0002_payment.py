import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("stripe_invoice_id", models.CharField(max_length=255, unique=True)),
                ("stripe_payment_intent_id", models.CharField(blank=True, max_length=255)),
                (
                    "amount",
                    models.PositiveIntegerField(default=0, help_text="Amount in the smallest currency unit"),
                ),
                ("currency", models.CharField(blank=True, max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[("paid", "Paid"), ("failed", "Failed")],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                (
                    "event_at",
                    models.DateTimeField(help_text="Creation time of the Stripe event that set the status"),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="billing.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-event_at"],
            },
        ),
    ]
