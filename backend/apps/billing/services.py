"""
Billing services - Stripe Checkout orchestration.

All Stripe API calls go through the injected Stripe module for testability.
External calls must NOT be inside database transactions.
"""

from dataclasses import dataclass
from types import ModuleType

import stripe
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.accounts.models import UserProfile
from apps.billing.metadata import CheckoutMetadata
from apps.billing.models import Customer
from apps.billing.reconciliation import apply_checkout_completed, apply_checkout_expired, from_unix
from apps.billing.stripe_client import price_for_tier
from apps.companies.models import Company, CustomerType
from apps.core.exceptions import Conflict, NotFound, UpstreamUnavailable, ValidationFailed
from apps.core.hubs import is_valid_hub
from apps.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CheckoutRequest:
    """
    What to charge and who for.

    Leave ``email`` empty for the payment-first flow; Stripe then collects
    the payer's details and the webhook materialises the customer.
    """

    hub: int
    success_url: str
    cancel_url: str
    price_tier: str = ""
    customer_type: str = CustomerType.COMPANY
    email: str = ""
    company_id: int | None = None
    user_id: int | None = None
    signup_id: str = ""
    reference: str = ""


@dataclass(frozen=True)
class CheckoutHandle:
    session_id: str
    url: str
    mode: str  # identified | payment_first
    stripe_customer_id: str | None = None


class CheckoutOrchestrator:
    """Opens Stripe Checkout Sessions carrying tenant correlation metadata."""

    IDENTIFIED = "identified"
    PAYMENT_FIRST = "payment_first"

    def __init__(self, stripe_module: ModuleType) -> None:
        self.stripe = stripe_module

    def create_checkout(self, request: CheckoutRequest) -> CheckoutHandle:
        """
        Create a subscription Checkout Session. Never waits for payment.

        Raises:
            ValidationFailed: Unknown hub or price tier.
            NotFound: ``company_id`` does not exist.
            Conflict: ``email`` is not a billing contact of that company.
            UpstreamUnavailable: Stripe call failed.
        """
        if not is_valid_hub(request.hub):
            raise ValidationFailed("Unknown hub.")
        price_id = price_for_tier(request.price_tier)

        company = None
        if request.company_id is not None:
            company = Company.objects.filter(pk=request.company_id).first()
            if company is None:
                raise NotFound("Account not found.")

        email = request.email.strip().lower()
        if company is not None and email and not self._is_company_contact(company, email):
            logger.warning("checkout_email_not_company_contact", company_id=company.id)
            raise Conflict("This email is not a billing contact for the account.")

        metadata = CheckoutMetadata(
            hub_id=request.hub,
            customer_type=request.customer_type,
            user_id=request.user_id,
            company_id=request.company_id,
            email=email,
            signup_id=request.signup_id,
        ).to_stripe()
        mode = self.IDENTIFIED if email else self.PAYMENT_FIRST

        session_params: dict = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
            "allow_promotion_codes": True,
        }
        reference = request.reference or (str(request.company_id) if request.company_id else request.signup_id)
        if reference:
            session_params["client_reference_id"] = reference

        stripe_customer_id = None
        try:
            if mode == self.IDENTIFIED:
                stripe_customer_id = self._resolve_stripe_customer(email, company, metadata)
                session_params["customer"] = stripe_customer_id
            session = self.stripe.checkout.Session.create(**session_params)
        except stripe.StripeError as e:
            logger.error("checkout_stripe_error", hub=request.hub, mode=mode, error=str(e))
            raise UpstreamUnavailable("Payment provider unavailable. Please try again.") from e

        if stripe_customer_id:
            try:
                self._upsert_local_customer(request, email, company, stripe_customer_id, session.id)
            except DatabaseError:
                logger.exception("checkout_local_customer_failed", stripe_customer_id=stripe_customer_id)

        logger.info(
            "checkout_session_created",
            session_id=session.id,
            mode=mode,
            hub=request.hub,
            company_id=request.company_id,
        )
        return CheckoutHandle(session_id=session.id, url=session.url, mode=mode, stripe_customer_id=stripe_customer_id)

    def sync_checkout_session(self, session_id: str) -> str:
        """
        Pull a session from Stripe and apply it locally.

        Lets the success page settle state without waiting for the webhook.
        Uses the session's creation time as event time, so anything the
        webhooks already applied is never overwritten.

        Returns the session status ('open', 'complete' or 'expired').
        """
        try:
            session = self.stripe.checkout.Session.retrieve(session_id)
        except stripe.InvalidRequestError as e:
            raise NotFound("Checkout session not found.") from e
        except stripe.StripeError as e:
            logger.error("checkout_sync_stripe_error", session_id=session_id, error=str(e))
            raise UpstreamUnavailable("Payment provider unavailable. Please try again.") from e

        status = session.get("status") or "open"
        event_at = from_unix(session.get("created")) or timezone.now()
        with transaction.atomic():
            if status == "complete" and session.get("payment_status") in ("paid", "no_payment_required"):
                apply_checkout_completed(session, event_at)
            elif status == "expired":
                apply_checkout_expired(session, event_at)

        logger.info("checkout_session_synced", session_id=session_id, status=status)
        return status

    def _is_company_contact(self, company: Company, email: str) -> bool:
        """The company's billing email, or the email of one of its admins."""
        billing_email = Customer.objects.filter(company=company).values_list("billing_email", flat=True).first()
        if billing_email and billing_email.lower() == email:
            return True
        return UserProfile.objects.filter(company=company, is_company_admin=True, user__email__iexact=email).exists()

    def _resolve_stripe_customer(self, email: str, company: Company | None, metadata: dict[str, str]) -> str:
        """Known customer for the company, else one with this email, else a new one."""
        if company is not None:
            existing = (
                Customer.objects.filter(company=company, stripe_customer_id__isnull=False)
                .values_list("stripe_customer_id", flat=True)
                .first()
            )
            if existing:
                return existing

        customers = self.stripe.Customer.list(email=email, limit=1)
        if customers.data:
            return customers.data[0].id

        customer = self.stripe.Customer.create(email=email, metadata=metadata)
        logger.info("stripe_customer_created", stripe_customer_id=customer.id)
        return customer.id

    def _upsert_local_customer(
        self,
        request: CheckoutRequest,
        email: str,
        company: Company | None,
        stripe_customer_id: str,
        session_id: str,
    ) -> Customer:
        customer = Customer.objects.filter(stripe_customer_id=stripe_customer_id).first()
        if customer is None and company is not None:
            customer = Customer.objects.filter(company=company).first()

        if customer is None:
            try:
                with transaction.atomic():
                    return Customer.objects.create(
                        company=company,
                        user_id=request.user_id,
                        hub=request.hub,
                        customer_type=request.customer_type,
                        billing_email=email,
                        stripe_customer_id=stripe_customer_id,
                        last_checkout_session_id=session_id,
                    )
            except IntegrityError:
                # Concurrent insert won the race, fetch the winner
                customer = Customer.objects.get(stripe_customer_id=stripe_customer_id)

        customer.stripe_customer_id = stripe_customer_id
        customer.last_checkout_session_id = session_id
        customer.billing_email = customer.billing_email or email
        customer.save(update_fields=["stripe_customer_id", "last_checkout_session_id", "billing_email", "updated_at"])
        return customer
