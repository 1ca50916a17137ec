"""
Account provisioning - turns a verified signup into a tenant.

Provisioning runs in two phases. The core phase (account number, company,
identity, profile) either completes or is compensated step by step; no
single transaction spans it. The enrichment phase (membership, billing
shell) is best-effort and can be replayed by ``repair_tenants``.
"""

from dataclasses import dataclass, field
from typing import Protocol

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.accounts.identity import DjangoIdentityProvider, Identity, IdentityProviderError
from apps.accounts.models import Membership, UserProfile
from apps.billing.models import Customer
from apps.companies.models import AccountNumberSequence, Company, CustomerType
from apps.companies.services import next_account_number
from apps.core.exceptions import (
    CompensationFailed,
    Conflict,
    NotFound,
    NotVerified,
    UpstreamUnavailable,
)
from apps.core.logging import get_logger
from apps.signups.models import SignupRequest

logger = get_logger(__name__)


class IdentityProvider(Protocol):
    def create_identity(self, email: str, name: str = "") -> Identity: ...

    def delete_identity(self, user_id: int) -> None: ...


@dataclass(frozen=True)
class TenantBundle:
    company: Company
    profile: UserProfile
    membership: Membership | None
    customer: Customer | None
    created: bool


@dataclass
class RepairReport:
    memberships_created: int = 0
    customers_created: int = 0
    failures: list[int] = field(default_factory=list)


def ensure_membership(profile: UserProfile) -> Membership:
    """Owner membership for the profile's company. Safe to call repeatedly."""
    try:
        membership, created = Membership.objects.get_or_create(
            user_id=profile.user_id,
            company_id=profile.company_id,
            defaults={"hub": profile.hub, "role": Membership.Role.OWNER},
        )
    except IntegrityError:
        # Concurrent insert won the race, fetch the winner
        membership = Membership.objects.get(user_id=profile.user_id, company_id=profile.company_id)
        created = False
    if created:
        logger.info("membership_created", company_id=profile.company_id, user_id=profile.user_id)
    return membership


def claim_payment_first_customer(profile: UserProfile) -> Customer | None:
    """
    Attach an unlinked customer from a payment-first checkout to the
    profile's company, matched on billing email and hub.
    """
    company = profile.company
    candidate = (
        Customer.objects.filter(company__isnull=True, hub=company.hub, billing_email__iexact=profile.user.email)
        .order_by("created_at")
        .first()
    )
    if candidate is None:
        return None

    try:
        with transaction.atomic():
            claimed = Customer.objects.filter(pk=candidate.pk, company__isnull=True).update(
                company=company,
                user_id=profile.user_id,
                customer_type=company.customer_type,
                updated_at=timezone.now(),
            )
    except IntegrityError:
        # The company got a customer concurrently
        return Customer.objects.get(company=company)
    if not claimed:
        return None

    candidate.refresh_from_db()
    logger.info("billing_customer_claimed", company_id=company.id, customer_id=candidate.id)
    return candidate


def ensure_billing_shell(profile: UserProfile) -> Customer:
    """
    Billing record for the profile's company. Safe to call repeatedly.

    Reuses the customer of an earlier payment-first checkout by the same
    payer, else creates a pending shell.
    """
    company = profile.company
    existing = Customer.objects.filter(company=company).first()
    if existing is not None:
        return existing
    claimed = claim_payment_first_customer(profile)
    if claimed is not None:
        return claimed

    try:
        customer, created = Customer.objects.get_or_create(
            company=company,
            defaults={
                "user_id": profile.user_id,
                "hub": company.hub,
                "customer_type": company.customer_type,
                "billing_email": profile.user.email,
                "payment_status": Customer.PaymentStatus.PENDING,
            },
        )
    except IntegrityError:
        customer = Customer.objects.get(company=company)
        created = False
    if created:
        logger.info("billing_shell_created", company_id=company.id, customer_id=customer.id)
    return customer


class AccountProvisioner:
    """
    Materialises the tenant bundle for a verified signup.

    The identity provider is injected so tests can simulate identity store
    failures, including failed compensation.
    """

    def __init__(self, identities: IdentityProvider | None = None) -> None:
        self.identities = identities or DjangoIdentityProvider()

    def provision(self, signup_id) -> TenantBundle:  # type: ignore[no-untyped-def]
        """
        Create (or return) the tenant for a verified signup.

        Raises:
            NotFound: No such signup request.
            NotVerified: The request has not been verified.
            Conflict: A concurrent call provisioned it first; re-fetch.
            UpstreamUnavailable: A store call failed; retry.
            CompensationFailed: Cleanup failed and left an orphaned identity.
        """
        try:
            signup = SignupRequest.objects.get(pk=signup_id)
        except (SignupRequest.DoesNotExist, ValidationError, ValueError):
            raise NotFound() from None

        if signup.state != SignupRequest.State.VERIFIED:
            raise NotVerified()

        existing = self.get_bundle(signup)
        if existing is not None:
            logger.info("provisioning_already_done", signup_id=str(signup.id), company_id=existing.company.id)
            return existing

        log = logger.bind(signup_id=str(signup.id), hub=signup.hub)
        company, profile = self._provision_core(signup, log)

        membership = None
        customer = None
        try:
            membership = ensure_membership(profile)
        except DatabaseError:
            log.exception("membership_creation_failed", company_id=company.id)
        try:
            customer = ensure_billing_shell(profile)
        except DatabaseError:
            log.exception("billing_shell_creation_failed", company_id=company.id)

        log.info(
            "provisioning_completed",
            company_id=company.id,
            account_number=company.account_number,
            user_id=profile.user_id,
        )
        return TenantBundle(company=company, profile=profile, membership=membership, customer=customer, created=True)

    def get_bundle(self, signup: SignupRequest) -> TenantBundle | None:
        """Bundle already provisioned for this signup, if any."""
        profile = (
            UserProfile.objects.select_related("company", "user").filter(signup_request=signup).first()
        )
        if profile is None:
            return None
        return TenantBundle(
            company=profile.company,
            profile=profile,
            membership=Membership.objects.filter(user_id=profile.user_id, company_id=profile.company_id).first(),
            customer=Customer.objects.filter(company_id=profile.company_id).first(),
            created=False,
        )

    def _provision_core(self, signup: SignupRequest, log) -> tuple[Company, UserProfile]:  # type: ignore[no-untyped-def]
        is_company = signup.customer_type == CustomerType.COMPANY
        full_name = f"{signup.first_name} {signup.last_name}".strip()

        # 1-2. Account number and company. Nothing external exists yet.
        try:
            account_number = next_account_number(signup.hub, AccountNumberSequence.Kind.COMPANY)
            with transaction.atomic():
                company = Company.objects.create(
                    hub=signup.hub,
                    public_name=signup.company_name if is_company else full_name,
                    legal_name=signup.company_name if is_company else "",
                    account_number=account_number,
                    customer_type=signup.customer_type,
                    source_signup=signup,
                )
        except IntegrityError as e:
            log.warning("provisioning_company_conflict")
            raise Conflict() from e
        except DatabaseError as e:
            log.exception("provisioning_company_failed")
            raise UpstreamUnavailable() from e

        # 3. Identity
        try:
            identity = self.identities.create_identity(signup.email, name=full_name)
        except IdentityProviderError as e:
            log.exception("provisioning_identity_failed")
            self._compensate(log, company=company)
            raise UpstreamUnavailable() from e

        if not identity.created and UserProfile.objects.filter(user=identity.user).exists():
            log.warning("provisioning_identity_in_use", user_id=identity.user.id)
            self._compensate(log, company=company)
            raise Conflict("An account already exists for this email. Please sign in instead.")

        # 4. Profile
        try:
            with transaction.atomic():
                profile = UserProfile.objects.create(
                    user=identity.user,
                    company=company,
                    signup_request=signup,
                    hub=signup.hub,
                    account_number=next_account_number(signup.hub, AccountNumberSequence.Kind.USER),
                    first_name=signup.first_name,
                    last_name=signup.last_name,
                    phone_number=signup.phone_number,
                    is_company_admin=True,
                )
                Company.objects.filter(pk=company.pk).update(created_by=identity.user)
                company.created_by = identity.user
        except DatabaseError as e:
            log.exception("provisioning_profile_failed", user_id=identity.user.id)
            self._compensate(log, company=company, identity=identity)
            if isinstance(e, IntegrityError):
                raise Conflict() from e
            raise UpstreamUnavailable() from e

        return company, profile

    def _compensate(self, log, company: Company, identity: Identity | None = None) -> None:  # type: ignore[no-untyped-def]
        """
        Undo the core steps taken by this call, newest first.

        Only identities created by this call are deleted. A failed identity
        delete is raised as CompensationFailed; a failed company delete is
        only logged since it holds no credentials.
        """
        orphaned_id = None
        if identity is not None and identity.created:
            try:
                self.identities.delete_identity(identity.user.id)
            except IdentityProviderError as e:
                log.error("provisioning_orphaned_identity", user_id=identity.user.id, error=str(e))
                orphaned_id = identity.user.id

        try:
            Company.objects.filter(pk=company.pk).delete()
        except DatabaseError:
            log.exception("provisioning_company_cleanup_failed", company_id=company.id)

        if orphaned_id is not None:
            raise CompensationFailed(orphaned_identity_id=orphaned_id)
        log.info("provisioning_compensated", company_id=company.id)


def repair_tenants(dry_run: bool = False) -> RepairReport:
    """
    Create missing memberships and billing shells for provisioned profiles.

    Replays the enrichment phase for tenants where it failed.
    """
    report = RepairReport()
    profiles = UserProfile.objects.select_related("company", "user").filter(is_company_admin=True)

    for profile in profiles.iterator():
        needs_membership = not Membership.objects.filter(
            user_id=profile.user_id, company_id=profile.company_id
        ).exists()
        needs_customer = not Customer.objects.filter(company_id=profile.company_id).exists()
        if not (needs_membership or needs_customer):
            continue

        if dry_run:
            report.memberships_created += int(needs_membership)
            report.customers_created += int(needs_customer)
            continue

        try:
            if needs_membership:
                ensure_membership(profile)
                report.memberships_created += 1
            if needs_customer:
                ensure_billing_shell(profile)
                report.customers_created += 1
        except DatabaseError:
            logger.exception("tenant_repair_failed", profile_id=profile.id)
            report.failures.append(profile.id)

    logger.info(
        "tenant_repair_completed",
        memberships_created=report.memberships_created,
        customers_created=report.customers_created,
        failures=len(report.failures),
        dry_run=dry_run,
    )
    return report

