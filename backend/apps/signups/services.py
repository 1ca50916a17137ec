"""
Verification ledger - signup requests and one-time codes.
"""

import hashlib
import hmac
import re
import secrets
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from apps.companies.models import CustomerType
from apps.core.exceptions import (
    AlreadyVerified,
    AttemptsExceeded,
    Conflict,
    Expired,
    InvalidCode,
    NotFound,
    RateLimited,
    UpstreamUnavailable,
    ValidationFailed,
)
from apps.core.hubs import hub_name, is_valid_hub
from apps.core.logging import get_logger
from apps.core.throttling import RateLimitExceeded, check_rate_limit
from apps.signups.channels import ChannelError, DeliveryReceipt, MessageChannel
from apps.signups.models import SignupRequest

logger = get_logger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")

State = SignupRequest.State


@dataclass
class SignupData:
    """Fields submitted with a signup form."""

    hub: int
    first_name: str
    last_name: str
    email: str
    phone_number: str
    customer_type: str = CustomerType.COMPANY
    auth_method: str = SignupRequest.AuthMethod.SMS
    company_name: str = ""


@dataclass(frozen=True)
class VerificationResult:
    signup_id: uuid.UUID
    hub: int
    customer_type: str
    verified_at: datetime


def generate_code(length: int | None = None) -> str:
    """Generate a cryptographically secure numeric code."""
    if length is None:
        length = settings.SIGNUP_CODE_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_code(code: str) -> str:
    """Keyed hash of a code, so a database leak does not reveal live codes."""
    return hmac.new(settings.SECRET_KEY.encode(), code.encode(), hashlib.sha256).hexdigest()


def build_code_message(signup: SignupRequest, code: str) -> tuple[str, str]:
    """Subject and body for a verification message."""
    brand = hub_name(signup.hub)
    subject = f"Your {brand} verification code"
    body = (
        f"Your {brand} verification code is: {code}. "
        f"It expires in {settings.SIGNUP_CODE_EXPIRY_MINUTES} minutes."
    )
    return subject, body


def normalize_signup(data: SignupData) -> SignupData:
    """
    Strip and validate submitted fields.

    Raises:
        ValidationFailed: Listing every problem found.
    """
    cleaned = SignupData(
        hub=data.hub,
        first_name=(data.first_name or "").strip(),
        last_name=(data.last_name or "").strip(),
        email=(data.email or "").strip().lower(),
        phone_number=re.sub(r"[\s\-().]", "", data.phone_number or ""),
        customer_type=data.customer_type,
        auth_method=data.auth_method,
        company_name=(data.company_name or "").strip(),
    )

    errors = []
    if not is_valid_hub(cleaned.hub):
        errors.append("unknown hub")
    if cleaned.customer_type not in CustomerType.values:
        errors.append("customer_type must be 'company' or 'individual'")
    if cleaned.auth_method not in SignupRequest.AuthMethod.values:
        errors.append("auth_method must be 'sms' or 'email'")
    if not cleaned.first_name:
        errors.append("first_name is required")
    if not cleaned.last_name:
        errors.append("last_name is required")
    try:
        validate_email(cleaned.email)
    except ValidationError:
        errors.append("a valid email is required")
    if not E164_PATTERN.match(cleaned.phone_number):
        errors.append("phone_number must be in E.164 format, e.g. +15551234567")
    if cleaned.customer_type == CustomerType.COMPANY and not cleaned.company_name:
        errors.append("company_name is required for company signups")

    if errors:
        raise ValidationFailed(f"Invalid signup: {'; '.join(errors)}.")
    return cleaned


class SignupLedger:
    """
    Owns signup requests and their one-time codes.

    Channels are keyed by auth method ("sms", "email") and injected so tests
    can record deliveries instead of sending them.
    """

    def __init__(self, channels: Mapping[str, MessageChannel]) -> None:
        self.channels = channels

    def create_signup(self, data: SignupData, ip_address: str | None = None) -> SignupRequest:
        """
        Create a signup request and deliver its code.

        A delivery failure leaves the request in ``created`` and is only
        logged; the client can ask for a resend.

        Raises:
            ValidationFailed: Missing or malformed fields.
            RateLimited: Too many signups for the same destination.
            UpstreamUnavailable: The request could not be stored.
        """
        data = normalize_signup(data)
        destination = data.email if data.auth_method == SignupRequest.AuthMethod.EMAIL else data.phone_number

        try:
            check_rate_limit(
                f"signup:{data.hub}:{destination}",
                max_requests=settings.SIGNUP_RATE_LIMIT_PER_HOUR,
                window_seconds=3600,
            )
        except RateLimitExceeded as e:
            raise RateLimited(
                "Too many verification requests. Please try again later.",
                retry_after=e.retry_after,
            ) from e

        now = timezone.now()
        code = generate_code()
        destination_field = "email" if data.auth_method == SignupRequest.AuthMethod.EMAIL else "phone_number"

        try:
            # Older open requests for this destination can no longer be verified
            superseded = SignupRequest.objects.filter(
                hub=data.hub,
                state__in=SignupRequest.OPEN_STATES,
                **{destination_field: destination},
            ).update(state=State.EXPIRED, updated_at=now)

            signup = SignupRequest.objects.create(
                hub=data.hub,
                customer_type=data.customer_type,
                auth_method=data.auth_method,
                company_name=data.company_name,
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                phone_number=data.phone_number,
                ip_address=ip_address,
                code_hash=hash_code(code),
                max_attempts=settings.SIGNUP_MAX_ATTEMPTS,
                expires_at=now + timedelta(minutes=settings.SIGNUP_CODE_EXPIRY_MINUTES),
            )
        except DatabaseError as e:
            logger.exception("signup_store_failed", hub=data.hub)
            raise UpstreamUnavailable() from e

        logger.info(
            "signup_created",
            signup_id=str(signup.id),
            hub=signup.hub,
            auth_method=signup.auth_method,
            superseded=superseded,
        )

        try:
            receipt = self._deliver(signup, code)
        except ChannelError as e:
            logger.warning("signup_code_delivery_failed", signup_id=str(signup.id), error=str(e))
            return signup

        signup.transition(
            State.CODE_SENT,
            code_sent_at=timezone.now(),
            delivery_message_id=receipt.message_id,
        )
        return signup

    def verify_code(self, signup_id: uuid.UUID | str, code: str) -> VerificationResult:
        """
        Check a submitted code.

        Failure precedence is fixed: not found, already verified, expired,
        attempts exceeded, then the comparison itself.

        Raises:
            NotFound, AlreadyVerified, Expired, AttemptsExceeded, InvalidCode
        """
        signup = self._get(signup_id)
        self._check_verifiable(signup)

        code = (code or "").strip()
        if not signup.code_hash or not secrets.compare_digest(signup.code_hash, hash_code(code)):
            self._record_mismatch(signup)

        verified_at = timezone.now()
        won = signup.transition(
            State.VERIFIED,
            expected={"code_hash": signup.code_hash, "attempts__lt": F("max_attempts")},
            code_hash="",
            verified_at=verified_at,
        )
        if not won:
            # Someone verified, resent or locked it between our read and write
            self._check_verifiable(signup)
            self._record_mismatch(signup)

        logger.info("signup_verified", signup_id=str(signup.id), hub=signup.hub, attempts=signup.attempts)
        return VerificationResult(
            signup_id=signup.id,
            hub=signup.hub,
            customer_type=signup.customer_type,
            verified_at=verified_at,
        )

    def resend(self, signup_id: uuid.UUID | str) -> SignupRequest:
        """
        Issue a fresh code and deliver it again.

        The expiry window restarts; the attempt counter does not, so resending
        cannot be used to get more guesses.

        Raises:
            NotFound, AlreadyVerified, Expired, AttemptsExceeded: As for verify.
            RateLimited: The resend allowance is used up.
            Conflict: A concurrent resend won.
            UpstreamUnavailable: The channel rejected the message.
        """
        signup = self._get(signup_id)
        self._check_verifiable(signup)

        if signup.resend_count >= settings.SIGNUP_MAX_RESENDS:
            logger.warning("signup_resend_limit_reached", signup_id=str(signup.id))
            raise RateLimited("Too many resend requests. Please start a new signup.")

        code = generate_code()
        now = timezone.now()
        expires_at = now + timedelta(minutes=settings.SIGNUP_CODE_EXPIRY_MINUTES)
        updated = SignupRequest.objects.filter(
            pk=signup.pk,
            state=signup.state,
            resend_count=signup.resend_count,
        ).update(
            code_hash=hash_code(code),
            expires_at=expires_at,
            resend_count=F("resend_count") + 1,
            updated_at=now,
        )
        if not updated:
            signup.refresh_from_db()
            self._check_verifiable(signup)
            raise Conflict("A new code was just requested. Please check your messages.")
        signup.refresh_from_db()

        try:
            receipt = self._deliver(signup, code)
        except ChannelError as e:
            logger.error("signup_resend_delivery_failed", signup_id=str(signup.id), error=str(e))
            raise UpstreamUnavailable("We could not send a new code. Please try again shortly.") from e

        signup.transition(State.CODE_SENT, code_sent_at=timezone.now(), delivery_message_id=receipt.message_id)
        logger.info("signup_code_resent", signup_id=str(signup.id), resend_count=signup.resend_count)
        return signup

    def _get(self, signup_id: uuid.UUID | str) -> SignupRequest:
        try:
            return SignupRequest.objects.get(pk=signup_id)
        except (SignupRequest.DoesNotExist, ValidationError, ValueError):
            raise NotFound() from None

    def _check_verifiable(self, signup: SignupRequest) -> None:
        if signup.state == State.VERIFIED:
            raise AlreadyVerified()
        if signup.state == State.EXPIRED:
            raise Expired()
        if signup.is_expired:
            if signup.is_open and not signup.transition(State.EXPIRED) and signup.state == State.VERIFIED:
                raise AlreadyVerified()
            logger.info("signup_expired", signup_id=str(signup.id))
            raise Expired()
        if signup.state == State.LOCKED or signup.attempts >= signup.max_attempts:
            raise AttemptsExceeded()

    def _record_mismatch(self, signup: SignupRequest) -> None:
        SignupRequest.objects.filter(pk=signup.pk, state__in=SignupRequest.OPEN_STATES).update(
            attempts=F("attempts") + 1,
            updated_at=timezone.now(),
        )
        signup.refresh_from_db(fields=["attempts", "state", "updated_at"])

        remaining = signup.remaining_attempts
        if remaining == 0 and signup.is_open:
            signup.transition(State.LOCKED)
            logger.warning("signup_locked", signup_id=str(signup.id), attempts=signup.attempts)
        else:
            logger.info("signup_code_invalid", signup_id=str(signup.id), remaining_attempts=remaining)

        raise InvalidCode(
            f"Invalid verification code. {remaining} attempts remaining.",
            remaining_attempts=remaining,
        )

    def _deliver(self, signup: SignupRequest, code: str) -> DeliveryReceipt:
        channel = self.channels.get(signup.auth_method)
        if channel is None:
            raise ChannelError(f"No channel configured for '{signup.auth_method}'")
        subject, body = build_code_message(signup, code)
        return channel.send(signup.destination, body, subject=subject)


def cleanup_expired_signups(hours: int = 24, dry_run: bool = False) -> int:
    """
    Expire lapsed requests and delete stale unverified ones.

    Verified requests are kept since tenants reference them.

    Returns:
        Number of requests deleted (or that would be deleted).
    """
    now = timezone.now()
    stale = SignupRequest.objects.exclude(state=State.VERIFIED).filter(
        expires_at__lt=now - timedelta(hours=hours),
    )
    if dry_run:
        return stale.count()

    lapsed = SignupRequest.objects.filter(state__in=SignupRequest.OPEN_STATES, expires_at__lt=now).update(
        state=State.EXPIRED,
        updated_at=now,
    )
    deleted, _ = stale.delete()

    if lapsed or deleted:
        logger.info("signup_cleanup", expired=lapsed, deleted=deleted)
    return deleted
