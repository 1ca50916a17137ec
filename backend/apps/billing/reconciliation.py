"""
Stripe webhook reconciliation.

Events arrive at least once and in any order. Every handler is therefore
written as an upsert guarded by a monotonic check:

- Customer payment fields only accept events newer than ``payment_event_at``,
  subscription fields only events newer than ``subscription_event_at``.
- A canceled/expired subscription is never revived by an older-looking
  status for the same subscription ID.
- Lead status only moves forward (new -> abandoned -> converted).
- A write that would change nothing is skipped entirely.

Tenants are located purely from Stripe IDs and the checkout metadata bag.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from types import ModuleType
from typing import Any

import stripe
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.billing.metadata import CheckoutMetadata
from apps.billing.models import TERMINAL_SUBSCRIPTION_STATUSES, Customer, Lead, Payment
from apps.billing.stripe_client import tier_for_price
from apps.companies.models import Company
from apps.core.exceptions import SignatureInvalid
from apps.core.logging import get_logger
from apps.core.webhooks import mark_webhook_processed

logger = get_logger(__name__)

WEBHOOK_SOURCE = "stripe"


@dataclass(frozen=True)
class Ack:
    event_id: str
    event_type: str
    outcome: str  # processed | duplicate | ignored


def from_unix(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def _id(value: Any) -> str:
    """Stripe fields may hold an ID or an expanded object."""
    if isinstance(value, Mapping):
        return value.get("id") or ""
    return value or ""


def _split_name(name: str | None) -> tuple[str, str]:
    first, _, last = (name or "").strip().partition(" ")
    return first, last.strip()


def _apply_changes(
    customer: Customer,
    watermark: str,
    event_at: datetime,
    changes: dict[str, Any],
) -> bool:
    """
    Write ``changes`` unless the event is older than the watermark.

    The update is conditional on the watermark in the database, so a newer
    event committed concurrently wins. Returns True if a row was written.
    """
    current = getattr(customer, watermark)
    if current is not None and event_at < current:
        logger.info(
            "stripe_event_stale",
            customer_id=customer.id,
            watermark=watermark,
            event_at=event_at.isoformat(),
            current=current.isoformat(),
        )
        return False

    dirty = {name: value for name, value in changes.items() if getattr(customer, name) != value}
    if not dirty and event_at == current:
        return False

    dirty[watermark] = event_at
    fresh = Q(**{f"{watermark}__isnull": True}) | Q(**{f"{watermark}__lte": event_at})
    updated = Customer.objects.filter(fresh, pk=customer.pk).update(updated_at=timezone.now(), **dirty)
    if updated:
        for name, value in dirty.items():
            setattr(customer, name, value)
    return bool(updated)


def _find_customer(stripe_customer_id: str, metadata: CheckoutMetadata) -> Customer | None:
    if stripe_customer_id:
        customer = Customer.objects.filter(stripe_customer_id=stripe_customer_id).first()
        if customer is not None:
            return customer
    if metadata.company_id:
        return Customer.objects.filter(company_id=metadata.company_id).first()
    return None


def _session_hub(metadata: CheckoutMetadata, stripe_customer_id: str) -> int | None:
    """Hub from the metadata, else from the customer Stripe already knows."""
    if metadata.hub_id is not None:
        return metadata.hub_id
    if not stripe_customer_id:
        return None
    return Customer.objects.filter(stripe_customer_id=stripe_customer_id).values_list("hub", flat=True).first()


def locate_customer(
    stripe_customer_id: str,
    metadata: CheckoutMetadata,
    email: str = "",
    create: bool = True,
) -> Customer | None:
    """
    Find the local customer for a Stripe customer, creating it if needed.

    Lookup order: Stripe customer ID, then the metadata company, then a
    pending shell with the same billing email and hub. Without any of
    those, a new customer is created from the metadata (the payment-first
    path), provided the metadata names a hub.
    """
    customer = _find_customer(stripe_customer_id, metadata)
    if customer is not None:
        if stripe_customer_id and customer.stripe_customer_id != stripe_customer_id:
            Customer.objects.filter(pk=customer.pk).update(
                stripe_customer_id=stripe_customer_id,
                updated_at=timezone.now(),
            )
            customer.stripe_customer_id = stripe_customer_id
        return customer

    if not create or not stripe_customer_id or metadata.hub_id is None:
        return None

    # Pending shell of a tenant provisioned before paying
    email = email or metadata.email
    if email:
        shell = Customer.objects.filter(
            billing_email__iexact=email,
            hub=metadata.hub_id,
            stripe_customer_id__isnull=True,
        ).first()
        if shell is not None:
            updated = Customer.objects.filter(pk=shell.pk, stripe_customer_id__isnull=True).update(
                stripe_customer_id=stripe_customer_id,
                updated_at=timezone.now(),
            )
            if updated:
                shell.stripe_customer_id = stripe_customer_id
                logger.info(
                    "billing_shell_linked_to_stripe",
                    customer_id=shell.id,
                    stripe_customer_id=stripe_customer_id,
                )
                return shell

    company = Company.objects.filter(pk=metadata.company_id).first() if metadata.company_id else None
    try:
        with transaction.atomic():
            customer = Customer.objects.create(
                company=company,
                user_id=metadata.user_id if company else None,
                hub=metadata.hub_id,
                customer_type=metadata.customer_type,
                billing_email=email,
                stripe_customer_id=stripe_customer_id,
            )
    except IntegrityError:
        # Concurrent insert won the race, fetch the winner
        customer = _find_customer(stripe_customer_id, metadata)
        if customer is None:
            raise
        return customer

    logger.info(
        "billing_customer_created_from_stripe",
        customer_id=customer.id,
        stripe_customer_id=stripe_customer_id,
        company_id=customer.company_id,
    )
    return customer


def _upsert_lead(
    email: str,
    hub: int,
    status: str,
    changes: dict[str, Any],
    defaults: dict[str, Any] | None = None,
) -> tuple[Lead, bool]:
    """
    Create or advance the lead for (email, hub). Never moves status backward.

    Returns the lead and whether anything was written.
    """
    try:
        with transaction.atomic():
            lead, created = Lead.objects.get_or_create(
                email=email,
                hub=hub,
                defaults={**(defaults or {}), **changes, "status": status},
            )
    except IntegrityError:
        lead, created = Lead.objects.get(email=email, hub=hub), False
    if created:
        return lead, True

    if Lead.rank(lead.status) > Lead.rank(status):
        return lead, False

    dirty = {name: value for name, value in changes.items() if getattr(lead, name) != value}
    if lead.status != status:
        dirty["status"] = status
    if not dirty:
        return lead, False

    # Guard against a concurrent writer having advanced the lead meanwhile
    allowed = [s for s, rank in Lead.STATUS_RANK.items() if rank <= Lead.rank(status)]
    updated = Lead.objects.filter(pk=lead.pk, status__in=allowed).update(updated_at=timezone.now(), **dirty)
    if updated:
        for name, value in dirty.items():
            setattr(lead, name, value)
    return lead, bool(updated)


def apply_checkout_completed(session: Mapping[str, Any], event_at: datetime) -> None:
    """Mark the lead converted and the customer paid for a completed session."""
    metadata = CheckoutMetadata.from_stripe(session.get("metadata"))
    details = session.get("customer_details") or {}
    email = (details.get("email") or session.get("customer_email") or metadata.email or "").strip().lower()
    stripe_customer_id = _id(session.get("customer"))
    subscription_id = _id(session.get("subscription"))
    session_id = session.get("id") or ""

    hub = _session_hub(metadata, stripe_customer_id)
    if hub is None:
        logger.warning("stripe_session_missing_hub", session_id=session_id)
        return

    if email:
        first_name, last_name = _split_name(details.get("name"))
        lead, written = _upsert_lead(
            email,
            hub,
            Lead.Status.CONVERTED,
            changes={
                "needs_followup": False,
                "stripe_session_id": session_id,
                "stripe_customer_id": stripe_customer_id,
                "stripe_subscription_id": subscription_id,
            },
            defaults={
                "first_name": first_name,
                "last_name": last_name,
                "phone_number": details.get("phone") or "",
                "customer_type": metadata.customer_type,
                "converted_at": event_at,
            },
        )
        if written and lead.converted_at is None:
            Lead.objects.filter(pk=lead.pk, converted_at__isnull=True).update(converted_at=event_at)
        logger.info("lead_converted", lead_id=lead.id, session_id=session_id, written=written)
    else:
        logger.warning("stripe_session_missing_email", session_id=session_id)

    customer = locate_customer(stripe_customer_id, metadata, email=email)
    if customer is None:
        logger.warning("stripe_session_customer_not_found", session_id=session_id)
        return

    changes: dict[str, Any] = {
        "payment_status": Customer.PaymentStatus.PAID,
        "retry_eligible": False,
        "last_checkout_session_id": session_id,
        "last_payment_at": event_at,
    }
    if subscription_id:
        changes["stripe_subscription_id"] = subscription_id
    if email and not customer.billing_email:
        changes["billing_email"] = email
    if _apply_changes(customer, "payment_event_at", event_at, changes):
        logger.info("billing_customer_paid", customer_id=customer.id, session_id=session_id)


def apply_checkout_expired(session: Mapping[str, Any], event_at: datetime) -> None:
    """Flag the lead for follow-up, unless it already converted."""
    metadata = CheckoutMetadata.from_stripe(session.get("metadata"))
    details = session.get("customer_details") or {}
    email = (details.get("email") or session.get("customer_email") or metadata.email or "").strip().lower()
    session_id = session.get("id") or ""
    hub = _session_hub(metadata, _id(session.get("customer")))

    if not email or hub is None:
        logger.info("stripe_session_expired_unattributed", session_id=session_id)
        return

    lead, written = _upsert_lead(
        email,
        hub,
        Lead.Status.ABANDONED,
        changes={"needs_followup": True, "stripe_session_id": session_id},
        defaults={"customer_type": metadata.customer_type, "abandoned_at": event_at},
    )
    if written and lead.abandoned_at is None:
        Lead.objects.filter(pk=lead.pk, abandoned_at__isnull=True).update(abandoned_at=event_at)
    logger.info("lead_abandoned", lead_id=lead.id, status=lead.status, written=written)


def apply_subscription_change(subscription: Mapping[str, Any], event_at: datetime) -> None:
    """Refresh status, tier and period fields from a subscription object."""
    metadata = CheckoutMetadata.from_stripe(subscription.get("metadata"))
    stripe_customer_id = _id(subscription.get("customer"))
    subscription_id = subscription.get("id") or ""
    status = subscription.get("status") or ""

    customer = locate_customer(stripe_customer_id, metadata)
    if customer is None:
        logger.warning(
            "stripe_subscription_customer_not_found",
            subscription_id=subscription_id,
            stripe_customer_id=stripe_customer_id,
        )
        return

    if (
        customer.stripe_subscription_id == subscription_id
        and customer.subscription_status in TERMINAL_SUBSCRIPTION_STATUSES
        and status not in TERMINAL_SUBSCRIPTION_STATUSES
    ):
        logger.info(
            "stripe_subscription_terminal_kept",
            customer_id=customer.id,
            subscription_id=subscription_id,
            ignored_status=status,
        )
        return

    if (
        customer.stripe_subscription_id
        and customer.stripe_subscription_id != subscription_id
        and customer.subscription_status not in TERMINAL_SUBSCRIPTION_STATUSES
        and status in TERMINAL_SUBSCRIPTION_STATUSES
    ):
        # A replaced subscription ending does not affect the current one
        logger.info(
            "stripe_subscription_superseded",
            customer_id=customer.id,
            subscription_id=subscription_id,
            current_subscription_id=customer.stripe_subscription_id,
            ignored_status=status,
        )
        return

    items = (subscription.get("items") or {}).get("data") or []
    item = items[0] if items else {}
    price = item.get("price") or {}
    # Newer API versions report the period on the item
    period_end = subscription.get("current_period_end") or item.get("current_period_end")

    changes: dict[str, Any] = {
        "stripe_subscription_id": subscription_id,
        "subscription_status": status,
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "current_period_end": from_unix(period_end),
    }
    tier = tier_for_price(price.get("id"))
    if tier:
        changes["subscription_tier"] = tier

    if _apply_changes(customer, "subscription_event_at", event_at, changes):
        logger.info(
            "billing_subscription_synced",
            customer_id=customer.id,
            subscription_id=subscription_id,
            status=status,
        )


def _invoice_metadata(invoice: Mapping[str, Any]) -> CheckoutMetadata:
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or invoice.get("subscription_details") or {}
    return CheckoutMetadata.from_stripe(details.get("metadata"))


def record_payment(
    customer: Customer,
    invoice: Mapping[str, Any],
    status: str,
    event_at: datetime,
) -> Payment | None:
    """
    Upsert the payment history row for an invoice.

    Keyed on the invoice ID, so replays and the paid/failed sequence of a
    retried invoice share one row. An event older than the row is ignored.
    """
    invoice_id = invoice.get("id") or ""
    if not invoice_id:
        return None

    amount_field = "amount_paid" if status == Payment.Status.PAID else "amount_due"
    values = {
        "customer": customer,
        "stripe_payment_intent_id": _id(invoice.get("payment_intent")),
        "amount": invoice.get(amount_field) or 0,
        "currency": (invoice.get("currency") or "").lower(),
        "status": status,
        "event_at": event_at,
    }
    try:
        with transaction.atomic():
            payment, created = Payment.objects.get_or_create(stripe_invoice_id=invoice_id, defaults=values)
    except IntegrityError:
        payment, created = Payment.objects.get(stripe_invoice_id=invoice_id), False
    if created:
        logger.info("billing_payment_recorded", invoice_id=invoice_id, status=status)
        return payment

    updated = Payment.objects.filter(pk=payment.pk, event_at__lte=event_at).update(
        updated_at=timezone.now(),
        **values,
    )
    if updated:
        payment.refresh_from_db()
    return payment


def apply_invoice_payment_failed(invoice: Mapping[str, Any], event_at: datetime) -> None:
    """Soft signal only: the tenant is never deactivated here."""
    stripe_customer_id = _id(invoice.get("customer"))
    customer = locate_customer(stripe_customer_id, _invoice_metadata(invoice), create=False)
    if customer is None:
        logger.warning("stripe_invoice_customer_not_found", invoice_id=invoice.get("id"))
        return

    record_payment(customer, invoice, Payment.Status.FAILED, event_at)
    changes = {
        "payment_status": Customer.PaymentStatus.PAYMENT_FAILED,
        "retry_eligible": True,
        "last_failed_invoice_id": invoice.get("id") or "",
        "next_payment_attempt_at": from_unix(invoice.get("next_payment_attempt")),
    }
    if _apply_changes(customer, "payment_event_at", event_at, changes):
        logger.warning(
            "billing_payment_failed",
            customer_id=customer.id,
            invoice_id=invoice.get("id"),
        )


def apply_invoice_paid(invoice: Mapping[str, Any], event_at: datetime) -> None:
    stripe_customer_id = _id(invoice.get("customer"))
    email = (invoice.get("customer_email") or "").strip().lower()
    customer = locate_customer(stripe_customer_id, _invoice_metadata(invoice), email=email)
    if customer is None:
        logger.warning("stripe_invoice_customer_not_found", invoice_id=invoice.get("id"))
        return

    record_payment(customer, invoice, Payment.Status.PAID, event_at)
    changes = {
        "payment_status": Customer.PaymentStatus.PAID,
        "retry_eligible": False,
        "next_payment_attempt_at": None,
        "last_payment_at": event_at,
    }
    if _apply_changes(customer, "payment_event_at", event_at, changes):
        logger.info("billing_invoice_paid", customer_id=customer.id, invoice_id=invoice.get("id"))


HANDLERS: dict[str, Callable[[Mapping[str, Any], datetime], None]] = {
    "checkout.session.completed": apply_checkout_completed,
    "checkout.session.expired": apply_checkout_expired,
    "customer.subscription.created": apply_subscription_change,
    "customer.subscription.updated": apply_subscription_change,
    "customer.subscription.deleted": apply_subscription_change,
    "invoice.payment_failed": apply_invoice_payment_failed,
    "invoice.paid": apply_invoice_paid,
    "invoice.payment_succeeded": apply_invoice_paid,
}


class WebhookReconciler:
    """
    Verifies and applies Stripe webhook events.

    Each known event runs in one transaction together with its
    ProcessedWebhook marker: a duplicate delivery finds the marker and does
    nothing, and a failed handler leaves no marker so Stripe's retry runs it
    again.
    """

    def __init__(self, stripe_module: ModuleType, webhook_secret: str) -> None:
        self.stripe = stripe_module
        self.webhook_secret = webhook_secret

    def handle_event(self, payload: bytes | str, signature: str | None) -> Ack:
        """
        Raises:
            SignatureInvalid: Missing or bad signature, or malformed payload.
        """
        return self.process(self.verify(payload, signature))

    def verify(self, payload: bytes | str, signature: str | None) -> Mapping[str, Any]:
        if not signature:
            raise SignatureInvalid("Missing webhook signature.")
        try:
            event = self.stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.warning("stripe_webhook_invalid_payload", error=str(e))
            raise SignatureInvalid("Malformed webhook payload.") from e
        except stripe.SignatureVerificationError as e:
            logger.warning("stripe_webhook_invalid_signature", error=str(e))
            raise SignatureInvalid() from e

        if not event.get("id") or not event.get("type"):
            raise SignatureInvalid("Malformed webhook payload.")
        return event

    def process(self, event: Mapping[str, Any]) -> Ack:
        event_id = event["id"]
        event_type = event["type"]
        log = logger.bind(event_id=event_id, event_type=event_type)

        handler = HANDLERS.get(event_type)
        if handler is None:
            log.debug("stripe_webhook_unhandled_event")
            return Ack(event_id=event_id, event_type=event_type, outcome="ignored")

        event_at = from_unix(event.get("created")) or timezone.now()
        with transaction.atomic():
            if not mark_webhook_processed(WEBHOOK_SOURCE, event_id):
                log.info("stripe_webhook_duplicate")
                return Ack(event_id=event_id, event_type=event_type, outcome="duplicate")
            handler(event["data"]["object"], event_at)

        log.info("stripe_webhook_processed")
        return Ack(event_id=event_id, event_type=event_type, outcome="processed")
