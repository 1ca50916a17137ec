"""
API endpoints for signup verification.
"""

from uuid import UUID

from django.http import HttpRequest
from ninja import Router

from apps.core.schemas import ErrorResponse
from apps.core.utils import get_client_ip
from apps.signups.channels import default_channels
from apps.signups.schemas import (
    CreateSignupRequest,
    CreateSignupResponse,
    ResendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from apps.signups.services import SignupData, SignupLedger

router = Router(tags=["signups"])


def get_ledger() -> SignupLedger:
    return SignupLedger(default_channels())


def _sent_message(auth_method: str) -> str:
    target = "email" if auth_method == "email" else "phone"
    return f"Verification code sent to your {target}."


@router.post(
    "",
    response={
        201: CreateSignupResponse,
        422: ErrorResponse,
        429: ErrorResponse,
        503: ErrorResponse,
    },
    operation_id="createSignup",
    summary="Start a signup",
)
def create_signup(request: HttpRequest, payload: CreateSignupRequest) -> tuple[int, CreateSignupResponse]:
    """
    Create a signup request and send its verification code.

    Delivery problems do not fail the call; use the resend endpoint if no
    code arrives.
    """
    signup = get_ledger().create_signup(
        SignupData(**payload.model_dump()),
        ip_address=get_client_ip(request),
    )
    return 201, CreateSignupResponse(
        signup_id=signup.id,
        expires_at=signup.expires_at,
        auth_method=signup.auth_method,
        message=_sent_message(signup.auth_method),
    )


@router.post(
    "/{signup_id}/verify",
    response={
        200: VerifyCodeResponse,
        400: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
        410: ErrorResponse,
    },
    operation_id="verifySignupCode",
    summary="Verify a signup code",
)
def verify_code(request: HttpRequest, signup_id: UUID, payload: VerifyCodeRequest) -> VerifyCodeResponse:
    """Check the code. Each wrong code uses up one attempt."""
    result = get_ledger().verify_code(signup_id, payload.code)
    return VerifyCodeResponse(
        verified=True,
        signup_id=result.signup_id,
        hub=result.hub,
        customer_type=result.customer_type,
    )


@router.post(
    "/{signup_id}/resend",
    response={
        200: ResendCodeResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
        410: ErrorResponse,
        429: ErrorResponse,
        503: ErrorResponse,
    },
    operation_id="resendSignupCode",
    summary="Resend a signup code",
)
def resend_code(request: HttpRequest, signup_id: UUID) -> ResendCodeResponse:
    """Send a new code. The expiry window restarts; used attempts do not."""
    signup = get_ledger().resend(signup_id)
    return ResendCodeResponse(
        success=True,
        expires_at=signup.expires_at,
        message=_sent_message(signup.auth_method),
    )
