"""
Django Ninja API configuration.
"""

from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI

from apps.accounts.api import router as accounts_router
from apps.billing.api import router as billing_router
from apps.core.exceptions import PipelineError, RateLimited
from apps.core.logging import get_logger
from apps.signups.api import router as signups_router

logger = get_logger(__name__)

api = NinjaAPI(
    title="SMS Hub Provisioning API",
    version="1.0.0",
    description="Signup verification, tenant provisioning and Stripe checkout.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {"name": "signups", "description": "Signup requests and one-time code verification"},
            {"name": "accounts", "description": "Tenant provisioning for verified signups"},
            {"name": "billing", "description": "Stripe Checkout sessions"},
            {"name": "health", "description": "Service health and readiness checks"},
        ],
    },
)

# Register routers
api.add_router("/signups", signups_router)
api.add_router("/accounts", accounts_router)
api.add_router("/billing", billing_router)


@api.exception_handler(PipelineError)
def pipeline_error(request: HttpRequest, exc: PipelineError) -> HttpResponse:
    """Render pipeline errors as {detail, code, retryable} with their status."""
    if exc.status_code >= 500:
        logger.error("api_pipeline_error", code=exc.code, path=request.path, error=exc.message)
    response = api.create_response(
        request,
        {"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        status=exc.status_code,
    )
    if isinstance(exc, RateLimited) and exc.retry_after:
        response["Retry-After"] = str(exc.retry_after)
    return response


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
