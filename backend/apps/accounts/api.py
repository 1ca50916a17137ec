"""
API endpoints for account provisioning.
"""

from django.http import HttpRequest
from ninja import Router

from apps.accounts.schemas import ProvisionRequest, ProvisionResponse
from apps.accounts.services import AccountProvisioner
from apps.core.schemas import ErrorResponse

router = Router(tags=["accounts"])


def get_provisioner() -> AccountProvisioner:
    return AccountProvisioner()


@router.post(
    "/provision",
    response={
        200: ProvisionResponse,
        201: ProvisionResponse,
        404: ErrorResponse,
        409: ErrorResponse,
        500: ErrorResponse,
        503: ErrorResponse,
    },
    operation_id="provisionAccount",
    summary="Create the tenant for a verified signup",
)
def provision_account(request: HttpRequest, payload: ProvisionRequest) -> tuple[int, ProvisionResponse]:
    """
    Create company, user, profile, membership and billing records.

    Repeating the call for the same signup returns the existing tenant with
    status 200. A 409 means another request is provisioning it; re-fetch.
    """
    bundle = get_provisioner().provision(payload.signup_id)
    return 201 if bundle.created else 200, ProvisionResponse(
        created=bundle.created,
        company_id=bundle.company.id,
        account_number=bundle.company.account_number,
        user_id=bundle.profile.user_id,
        profile_id=bundle.profile.id,
        membership_id=bundle.membership.id if bundle.membership else None,
        customer_id=bundle.customer.id if bundle.customer else None,
    )
