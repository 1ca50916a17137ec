import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SignupRequest",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "hub",
                    models.PositiveSmallIntegerField(
                        choices=[(1, "PercyTech"), (2, "Gnymble"), (3, "PercyMD"), (4, "PercyText")]
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
                (
                    "auth_method",
                    models.CharField(choices=[("sms", "SMS"), ("email", "Email")], default="sms", max_length=10),
                ),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("first_name", models.CharField(max_length=150)),
                ("last_name", models.CharField(max_length=150)),
                ("email", models.EmailField(max_length=254)),
                ("phone_number", models.CharField(help_text="Phone number in E.164 format", max_length=20)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                (
                    "code_hash",
                    models.CharField(
                        blank=True, help_text="HMAC-SHA256 of the code. Cleared once verified.", max_length=64
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("code_sent", "Code sent"),
                            ("verified", "Verified"),
                            ("expired", "Expired"),
                            ("locked", "Locked"),
                        ],
                        db_index=True,
                        default="created",
                        max_length=20,
                    ),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("max_attempts", models.PositiveSmallIntegerField(default=5)),
                ("resend_count", models.PositiveSmallIntegerField(default=0)),
                (
                    "delivery_message_id",
                    models.CharField(blank=True, help_text="Channel message ID of the last delivery", max_length=255),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("expires_at", models.DateTimeField()),
                ("code_sent_at", models.DateTimeField(blank=True, null=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["phone_number", "hub", "state"], name="signup_phone_hub_state_idx"),
                    models.Index(fields=["email", "hub", "state"], name="signup_email_hub_state_idx"),
                    models.Index(fields=["expires_at"], name="signup_expires_at_idx"),
                ],
            },
        ),
    ]
