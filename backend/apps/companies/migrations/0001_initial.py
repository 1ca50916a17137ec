import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("signups", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="AccountNumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "hub",
                    models.PositiveSmallIntegerField(
                        choices=[(1, "PercyTech"), (2, "Gnymble"), (3, "PercyMD"), (4, "PercyText")]
                    ),
                ),
                ("kind", models.CharField(choices=[("company", "Company"), ("user", "User")], max_length=20)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("hub", "kind"), name="unique_account_sequence")],
            },
        ),
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "hub",
                    models.PositiveSmallIntegerField(
                        choices=[(1, "PercyTech"), (2, "Gnymble"), (3, "PercyMD"), (4, "PercyText")], db_index=True
                    ),
                ),
                ("public_name", models.CharField(max_length=255)),
                ("legal_name", models.CharField(blank=True, max_length=255)),
                (
                    "account_number",
                    models.CharField(
                        help_text="Hub-prefixed account number, e.g. 'GNYMBLE-000042'", max_length=32, unique=True
                    ),
                ),
                (
                    "customer_type",
                    models.CharField(
                        choices=[("company", "Company"), ("individual", "Individual")],
                        default="company",
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "source_signup",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="company",
                        to="signups.signuprequest",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "companies",
                "ordering": ["-created_at"],
            },
        ),
    ]
