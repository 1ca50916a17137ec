"""
Tests for Stripe webhook reconciliation.

Events are fed to WebhookReconciler.process as plain dicts, in the orders
Stripe may actually deliver them: duplicated, reordered and late.
"""

from unittest.mock import MagicMock, patch

import pytest
import stripe

from apps.billing.models import Customer, Lead, Payment
from apps.billing.reconciliation import HANDLERS, WebhookReconciler, from_unix
from apps.billing.services import CheckoutOrchestrator, CheckoutRequest
from apps.companies.models import Company
from apps.core.exceptions import SignatureInvalid
from apps.core.models import ProcessedWebhook
from tests.billing.factories import CustomerFactory, LeadFactory
from tests.conftest import STRIPE_TEST_SECRET, build_stripe_event, sign_stripe_payload

T0 = 1_700_000_000


@pytest.fixture
def reconciler() -> WebhookReconciler:
    return WebhookReconciler(stripe, STRIPE_TEST_SECRET)


def event(event_type: str, obj: dict, event_id: str = "evt_1", created: int = T0) -> dict:
    return {"id": event_id, "type": event_type, "created": created, "data": {"object": obj}}


def session_object(**overrides) -> dict:
    obj = {
        "id": "cs_1",
        "object": "checkout.session",
        "customer": "cus_1",
        "subscription": "sub_1",
        "customer_details": {"email": "jane@example.com", "name": "Jane Doe", "phone": "+15551234567"},
        "metadata": {"hub_id": "2", "customer_type": "company"},
    }
    obj.update(overrides)
    return obj


def subscription_object(status: str = "active", sub_id: str = "sub_1", **overrides) -> dict:
    obj = {
        "id": sub_id,
        "object": "subscription",
        "customer": "cus_1",
        "status": status,
        "cancel_at_period_end": False,
        "metadata": {"hub_id": "2"},
        "items": {"data": [{"price": {"id": "price_pro_test"}, "current_period_end": T0 + 30 * 86400}]},
    }
    obj.update(overrides)
    return obj


def invoice_object(**overrides) -> dict:
    obj = {"id": "in_1", "object": "invoice", "customer": "cus_1", "next_payment_attempt": T0 + 86400}
    obj.update(overrides)
    return obj


@pytest.mark.django_db
class TestEventBookkeeping:
    """Duplicate suppression and handler dispatch."""

    def test_known_event_processed_once(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        paid = event("invoice.paid", invoice_object())

        assert reconciler.process(paid).outcome == "processed"
        assert reconciler.process(paid).outcome == "duplicate"
        assert ProcessedWebhook.objects.filter(source="stripe", event_id="evt_1").count() == 1

    def test_replayed_event_leaves_state_unchanged(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        completed = event("checkout.session.completed", session_object())
        reconciler.process(completed)
        customer_before = list(Customer.objects.values())
        leads_before = list(Lead.objects.values())

        reconciler.process(completed)

        assert list(Customer.objects.values()) == customer_before
        assert list(Lead.objects.values()) == leads_before

    def test_unknown_event_ignored_without_marker(self, reconciler) -> None:
        ack = reconciler.process(event("customer.created", {"id": "cus_1"}))

        assert ack.outcome == "ignored"
        assert ProcessedWebhook.objects.count() == 0

    def test_failed_handler_leaves_no_marker(self, reconciler) -> None:
        boom = MagicMock(side_effect=RuntimeError("db down"))
        with patch.dict(HANDLERS, {"invoice.paid": boom}):
            with pytest.raises(RuntimeError):
                reconciler.process(event("invoice.paid", invoice_object()))

        assert ProcessedWebhook.objects.count() == 0

    def test_handler_receives_event_time(self, reconciler) -> None:
        handler = MagicMock()
        with patch.dict(HANDLERS, {"invoice.paid": handler}):
            reconciler.process(event("invoice.paid", invoice_object(), created=T0 + 5))

        handler.assert_called_once_with(invoice_object(), from_unix(T0 + 5))


@pytest.mark.django_db
class TestCheckoutEvents:
    def test_completed_marks_customer_paid_and_lead_converted(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")

        reconciler.process(event("checkout.session.completed", session_object()))

        customer.refresh_from_db()
        assert customer.payment_status == Customer.PaymentStatus.PAID
        assert customer.stripe_subscription_id == "sub_1"
        assert customer.last_checkout_session_id == "cs_1"
        assert customer.payment_event_at == from_unix(T0)
        lead = Lead.objects.get(email="jane@example.com", hub=2)
        assert lead.status == Lead.Status.CONVERTED
        assert lead.needs_followup is False
        assert lead.first_name == "Jane"
        assert lead.last_name == "Doe"
        assert lead.converted_at == from_unix(T0)

    def test_payment_first_creates_customer_from_metadata(self, reconciler) -> None:
        reconciler.process(
            event(
                "checkout.session.completed",
                session_object(customer="cus_pf", metadata={"hub_id": "4", "customer_type": "individual"}),
            )
        )

        customer = Customer.objects.get(stripe_customer_id="cus_pf")
        assert customer.company is None
        assert customer.hub == 4
        assert customer.customer_type == "individual"
        assert customer.billing_email == "jane@example.com"
        assert customer.payment_status == Customer.PaymentStatus.PAID
        assert Company.objects.count() == 0

    def test_metadata_company_links_customer(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id=None)

        reconciler.process(
            event(
                "checkout.session.completed",
                session_object(metadata={"hub_id": "2", "company_id": str(customer.company_id)}),
            )
        )

        customer.refresh_from_db()
        assert customer.stripe_customer_id == "cus_1"
        assert customer.payment_status == Customer.PaymentStatus.PAID

    def test_session_without_hub_is_skipped(self, reconciler) -> None:
        ack = reconciler.process(event("checkout.session.completed", session_object(metadata={})))

        assert ack.outcome == "processed"
        assert Customer.objects.count() == 0
        assert Lead.objects.count() == 0

    def test_session_without_hub_uses_known_customer_hub(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1", company__hub=3, company__account_number="PERCYMD-000001")

        reconciler.process(event("checkout.session.completed", session_object(metadata={})))

        lead = Lead.objects.get(email="jane@example.com")
        assert lead.hub == 3
        assert lead.status == Lead.Status.CONVERTED
        customer.refresh_from_db()
        assert customer.payment_status == Customer.PaymentStatus.PAID

    def test_expired_flags_lead_for_followup(self, reconciler) -> None:
        reconciler.process(event("checkout.session.expired", session_object(customer=None)))

        lead = Lead.objects.get(email="jane@example.com")
        assert lead.status == Lead.Status.ABANDONED
        assert lead.needs_followup is True
        assert lead.abandoned_at == from_unix(T0)

    def test_expired_after_completed_keeps_conversion(self, reconciler) -> None:
        """An expiry delivered after completion must not un-convert the lead."""
        CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("checkout.session.completed", session_object(), event_id="evt_done"))

        reconciler.process(event("checkout.session.expired", session_object(), event_id="evt_exp", created=T0 + 60))

        lead = Lead.objects.get(email="jane@example.com")
        assert lead.status == Lead.Status.CONVERTED
        assert lead.needs_followup is False
        assert lead.stripe_session_id == "cs_1"

    def test_completed_after_abandoned_converts(self, reconciler) -> None:
        LeadFactory(email="jane@example.com", hub=2, status=Lead.Status.ABANDONED, needs_followup=True)

        reconciler.process(event("checkout.session.completed", session_object(customer="cus_new")))

        lead = Lead.objects.get(email="jane@example.com")
        assert lead.status == Lead.Status.CONVERTED
        assert lead.needs_followup is False
        assert lead.converted_at == from_unix(T0)


@pytest.mark.django_db
class TestSubscriptionEvents:
    def test_subscription_fields_synced(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")

        reconciler.process(event("customer.subscription.created", subscription_object()))

        customer.refresh_from_db()
        assert customer.subscription_status == "active"
        assert customer.subscription_tier == "professional"
        assert customer.stripe_subscription_id == "sub_1"
        assert customer.current_period_end == from_unix(T0 + 30 * 86400)
        assert customer.has_active_subscription

    def test_older_event_does_not_overwrite_newer(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(
            event("customer.subscription.updated", subscription_object("past_due"), "evt_new", created=T0 + 60)
        )

        reconciler.process(event("customer.subscription.created", subscription_object("active"), "evt_old"))

        customer.refresh_from_db()
        assert customer.subscription_status == "past_due"
        assert customer.subscription_event_at == from_unix(T0 + 60)

    def test_canceled_subscription_is_never_revived(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("customer.subscription.deleted", subscription_object("canceled"), "evt_del"))

        reconciler.process(
            event("customer.subscription.updated", subscription_object("active"), "evt_upd", created=T0 + 60)
        )

        customer.refresh_from_db()
        assert customer.subscription_status == "canceled"

    def test_new_subscription_after_cancel_is_accepted(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("customer.subscription.deleted", subscription_object("canceled"), "evt_del"))

        reconciler.process(
            event(
                "customer.subscription.created",
                subscription_object("active", sub_id="sub_2"),
                "evt_new",
                created=T0 + 60,
            )
        )

        customer.refresh_from_db()
        assert customer.subscription_status == "active"
        assert customer.stripe_subscription_id == "sub_2"

    def test_ending_replaced_subscription_keeps_current_one(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("customer.subscription.created", subscription_object(sub_id="sub_a"), "evt_a"))
        reconciler.process(
            event("customer.subscription.created", subscription_object(sub_id="sub_b"), "evt_b", created=T0 + 60)
        )

        ack = reconciler.process(
            event(
                "customer.subscription.deleted",
                subscription_object("canceled", sub_id="sub_a"),
                "evt_a_del",
                created=T0 + 120,
            )
        )

        assert ack.outcome == "processed"
        customer.refresh_from_db()
        assert customer.stripe_subscription_id == "sub_b"
        assert customer.subscription_status == "active"
        assert customer.has_active_subscription

    def test_current_subscription_can_still_be_canceled(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("customer.subscription.created", subscription_object(sub_id="sub_b"), "evt_b"))

        reconciler.process(
            event(
                "customer.subscription.deleted",
                subscription_object("canceled", sub_id="sub_b"),
                "evt_b_del",
                created=T0 + 60,
            )
        )

        customer.refresh_from_db()
        assert customer.stripe_subscription_id == "sub_b"
        assert customer.subscription_status == "canceled"

    def test_subscription_for_payment_first_checkout_creates_customer(self, reconciler) -> None:
        """The subscription event may arrive before checkout.session.completed."""
        reconciler.process(event("customer.subscription.created", subscription_object(customer="cus_pf")))

        customer = Customer.objects.get(stripe_customer_id="cus_pf")
        assert customer.subscription_status == "active"
        assert customer.payment_status == Customer.PaymentStatus.PENDING


@pytest.mark.django_db
class TestInvoiceEvents:
    def test_payment_failed_is_soft(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")

        reconciler.process(event("invoice.payment_failed", invoice_object()))

        customer.refresh_from_db()
        assert customer.payment_status == Customer.PaymentStatus.PAYMENT_FAILED
        assert customer.retry_eligible is True
        assert customer.last_failed_invoice_id == "in_1"
        assert customer.next_payment_attempt_at == from_unix(T0 + 86400)
        assert customer.company.is_active is True

    def test_payment_failed_for_unknown_customer_creates_nothing(self, reconciler) -> None:
        ack = reconciler.process(event("invoice.payment_failed", invoice_object(customer="cus_unknown")))

        assert ack.outcome == "processed"
        assert Customer.objects.count() == 0

    def test_paid_after_failure_clears_retry(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("invoice.payment_failed", invoice_object(), "evt_fail"))

        reconciler.process(event("invoice.paid", invoice_object(), "evt_paid", created=T0 + 3600))

        customer.refresh_from_db()
        assert customer.payment_status == Customer.PaymentStatus.PAID
        assert customer.retry_eligible is False
        assert customer.next_payment_attempt_at is None
        assert customer.last_payment_at == from_unix(T0 + 3600)

    def test_late_paid_does_not_mask_newer_failure(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("invoice.payment_failed", invoice_object(id="in_2"), "evt_fail", created=T0 + 60))

        reconciler.process(event("invoice.paid", invoice_object(), "evt_paid"))

        customer.refresh_from_db()
        assert customer.payment_status == Customer.PaymentStatus.PAYMENT_FAILED

    def test_paid_invoice_recorded_once(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id="cus_1")
        invoice = invoice_object(amount_paid=4900, currency="USD", payment_intent="pi_1")

        reconciler.process(event("invoice.paid", invoice, "evt_paid"))
        reconciler.process(event("invoice.payment_succeeded", invoice, "evt_succeeded"))

        payment = Payment.objects.get()
        assert payment.customer == customer
        assert payment.stripe_invoice_id == "in_1"
        assert payment.stripe_payment_intent_id == "pi_1"
        assert payment.amount == 4900
        assert payment.currency == "usd"
        assert payment.status == Payment.Status.PAID

    def test_replayed_invoice_event_leaves_payment_unchanged(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        paid = event("invoice.paid", invoice_object(amount_paid=4900, currency="usd"))
        reconciler.process(paid)
        before = list(Payment.objects.values())

        reconciler.process(paid)

        assert list(Payment.objects.values()) == before

    def test_retried_invoice_moves_from_failed_to_paid(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(event("invoice.payment_failed", invoice_object(amount_due=4900, currency="usd"), "evt_fail"))

        reconciler.process(
            event("invoice.paid", invoice_object(amount_paid=4900, currency="usd"), "evt_paid", created=T0 + 3600)
        )

        payment = Payment.objects.get(stripe_invoice_id="in_1")
        assert payment.status == Payment.Status.PAID
        assert payment.event_at == from_unix(T0 + 3600)

    def test_late_failure_does_not_overwrite_paid_invoice(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        reconciler.process(
            event("invoice.paid", invoice_object(amount_paid=4900, currency="usd"), "evt_paid", created=T0 + 3600)
        )

        reconciler.process(event("invoice.payment_failed", invoice_object(amount_due=4900, currency="usd"), "evt_fail"))

        assert Payment.objects.get(stripe_invoice_id="in_1").status == Payment.Status.PAID

    def test_failure_for_unknown_customer_records_no_payment(self, reconciler) -> None:
        reconciler.process(event("invoice.payment_failed", invoice_object(customer="cus_unknown")))

        assert Payment.objects.count() == 0

    def test_invoice_located_through_subscription_metadata(self, reconciler) -> None:
        customer = CustomerFactory(stripe_customer_id=None)
        invoice = invoice_object(
            customer="cus_9",
            parent={"subscription_details": {"metadata": {"hub_id": "2", "company_id": str(customer.company_id)}}},
        )

        reconciler.process(event("invoice.paid", invoice))

        customer.refresh_from_db()
        assert customer.stripe_customer_id == "cus_9"
        assert customer.payment_status == Customer.PaymentStatus.PAID


@pytest.mark.django_db
class TestVerify:
    """Signature verification with the real Stripe library."""

    def test_valid_signature(self, reconciler) -> None:
        payload = build_stripe_event("invoice.paid", invoice_object(), event_id="evt_sig")

        verified = reconciler.verify(payload, sign_stripe_payload(payload))

        assert verified["id"] == "evt_sig"
        assert verified["type"] == "invoice.paid"

    def test_missing_signature(self, reconciler) -> None:
        with pytest.raises(SignatureInvalid):
            reconciler.verify("{}", None)

    def test_wrong_secret(self, reconciler) -> None:
        payload = build_stripe_event("invoice.paid", invoice_object())

        with pytest.raises(SignatureInvalid):
            reconciler.verify(payload, sign_stripe_payload(payload, secret="whsec_other"))

    def test_tampered_payload(self, reconciler) -> None:
        payload = build_stripe_event("invoice.paid", invoice_object())
        signature = sign_stripe_payload(payload)

        with pytest.raises(SignatureInvalid):
            reconciler.verify(payload.replace("in_1", "in_2"), signature)

    def test_event_without_type(self, reconciler) -> None:
        payload = '{"id": "evt_1", "object": "event"}'

        with pytest.raises(SignatureInvalid):
            reconciler.verify(payload, sign_stripe_payload(payload))

    def test_handle_event_verifies_then_processes(self, reconciler) -> None:
        CustomerFactory(stripe_customer_id="cus_1")
        payload = build_stripe_event("invoice.paid", invoice_object(), event_id="evt_h")

        ack = reconciler.handle_event(payload, sign_stripe_payload(payload))

        assert ack.outcome == "processed"
        assert ack.event_id == "evt_h"


@pytest.mark.django_db
class TestPaymentFirstFlow:
    def test_checkout_then_completed_webhook_creates_one_converted_lead(self, reconciler) -> None:
        stripe_module = MagicMock()
        stripe_module.checkout.Session.create.return_value = MagicMock(id="cs_pf", url="https://checkout/cs_pf")
        handle = CheckoutOrchestrator(stripe_module).create_checkout(
            CheckoutRequest(hub=2, success_url="https://x/s", cancel_url="https://x/c")
        )
        assert Customer.objects.count() == 0
        metadata = stripe_module.checkout.Session.create.call_args.kwargs["metadata"]

        reconciler.process(
            event(
                "checkout.session.completed",
                session_object(id=handle.session_id, customer="cus_pf", metadata=metadata),
            )
        )

        lead = Lead.objects.get()
        assert lead.status == Lead.Status.CONVERTED
        assert lead.stripe_session_id == "cs_pf"
        assert Customer.objects.get().stripe_customer_id == "cus_pf"
