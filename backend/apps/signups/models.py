"""
Signup request models.
"""

import uuid

from django.db import models
from django.utils import timezone

from apps.companies.models import CustomerType
from apps.core.hubs import Hub


class InvalidTransition(Exception):
    """Raised when a signup request is asked to move to a state it cannot reach."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move signup request from '{current}' to '{target}'")
        self.current = current
        self.target = target


class SignupRequest(models.Model):
    """
    A pending signup waiting for its one-time code.

    The lifecycle is an explicit state machine. ``verified``, ``expired`` and
    ``locked`` are terminal: a request is never reused once it reaches one of
    them, and a fresh signup must be started instead.

    Only a keyed hash of the code is stored; it is cleared on success so the
    same code cannot be matched twice.
    """

    class State(models.TextChoices):
        CREATED = "created", "Created"
        CODE_SENT = "code_sent", "Code sent"
        VERIFIED = "verified", "Verified"
        EXPIRED = "expired", "Expired"
        LOCKED = "locked", "Locked"

    class AuthMethod(models.TextChoices):
        SMS = "sms", "SMS"
        EMAIL = "email", "Email"

    TRANSITIONS: dict[str, frozenset[str]] = {
        State.CREATED: frozenset({State.CODE_SENT, State.VERIFIED, State.EXPIRED, State.LOCKED}),
        State.CODE_SENT: frozenset({State.CODE_SENT, State.VERIFIED, State.EXPIRED, State.LOCKED}),
        State.VERIFIED: frozenset(),
        State.EXPIRED: frozenset(),
        State.LOCKED: frozenset(),
    }
    OPEN_STATES = (State.CREATED, State.CODE_SENT)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Who is signing up
    hub = models.PositiveSmallIntegerField(choices=Hub.choices)
    customer_type = models.CharField(
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.COMPANY,
    )
    auth_method = models.CharField(
        max_length=10,
        choices=AuthMethod.choices,
        default=AuthMethod.SMS,
    )
    company_name = models.CharField(max_length=255, blank=True)
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    email = models.EmailField()
    phone_number = models.CharField(
        max_length=20,
        help_text="Phone number in E.164 format",
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    # Verification
    code_hash = models.CharField(
        max_length=64,
        blank=True,
        help_text="HMAC-SHA256 of the code. Cleared once verified.",
    )
    state = models.CharField(
        max_length=20,
        choices=State.choices,
        default=State.CREATED,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    max_attempts = models.PositiveSmallIntegerField(default=5)
    resend_count = models.PositiveSmallIntegerField(default=0)
    delivery_message_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Channel message ID of the last delivery",
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    expires_at = models.DateTimeField()
    code_sent_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["phone_number", "hub", "state"], name="signup_phone_hub_state_idx"),
            models.Index(fields=["email", "hub", "state"], name="signup_email_hub_state_idx"),
            models.Index(fields=["expires_at"], name="signup_expires_at_idx"),
        ]

    def __str__(self) -> str:
        return f"Signup {self.id} ({self.state})"

    @property
    def destination(self) -> str:
        """Address the code is delivered to."""
        if self.auth_method == self.AuthMethod.EMAIL:
            return self.email
        return self.phone_number

    @property
    def is_open(self) -> bool:
        return self.state in self.OPEN_STATES

    @property
    def is_expired(self) -> bool:
        return timezone.now() > self.expires_at

    @property
    def remaining_attempts(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def can_transition(self, target: str) -> bool:
        return target in self.TRANSITIONS[self.state]

    def transition(self, target: str, expected: dict | None = None, **changes) -> bool:  # type: ignore[no-untyped-def]
        """
        Move to ``target`` if nobody else moved the row first.

        The update is conditional on the state this instance last read (plus
        any ``expected`` column filters), so of two concurrent callers only
        one wins. Returns False for the loser, whose instance is refreshed.

        Raises:
            InvalidTransition: If the transition table forbids the move.
        """
        if not self.can_transition(target):
            raise InvalidTransition(self.state, target)

        now = timezone.now()
        updated = SignupRequest.objects.filter(pk=self.pk, state=self.state, **(expected or {})).update(
            state=target,
            updated_at=now,
            **changes,
        )
        if not updated:
            self.refresh_from_db()
            return False

        self.state = target
        self.updated_at = now
        for field, value in changes.items():
            setattr(self, field, value)
        return True
