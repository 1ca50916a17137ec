"""
Error taxonomy for the provisioning pipeline.

Every error carries the HTTP status it maps to, a stable machine-readable
code, and whether the caller may retry the same request.
"""


class PipelineError(Exception):
    """Base exception for signup, provisioning and billing operations."""

    status_code = 400
    code = "error"
    retryable = False
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationFailed(PipelineError):
    """Input is missing required fields or has invalid values."""

    status_code = 422
    code = "validation_failed"
    default_message = "Invalid request."


class NotFound(PipelineError):
    """No such signup request or tenant. The caller must restart the flow."""

    status_code = 404
    code = "not_found"
    default_message = "Signup request not found. Please start again."


class Expired(PipelineError):
    """The signup request expired. A new signup is required."""

    status_code = 410
    code = "expired"
    default_message = "Verification code has expired. Please request a new one."


class AlreadyVerified(PipelineError):
    """The signup request was already verified."""

    status_code = 409
    code = "already_verified"
    default_message = "This signup has already been verified."


class AttemptsExceeded(PipelineError):
    """Too many wrong codes. The request is locked for good."""

    status_code = 403
    code = "attempts_exceeded"
    default_message = "Too many incorrect attempts. Please start a new signup."


class InvalidCode(PipelineError):
    """The submitted code does not match."""

    status_code = 400
    code = "invalid_code"
    retryable = True
    default_message = "Invalid verification code."

    def __init__(self, message: str | None = None, remaining_attempts: int | None = None) -> None:
        super().__init__(message)
        self.remaining_attempts = remaining_attempts


class NotVerified(PipelineError):
    """Provisioning was requested for a signup that is not verified."""

    status_code = 409
    code = "not_verified"
    default_message = "Signup must be verified before the account can be created."


class Conflict(PipelineError):
    """The tenant already exists. Treat as success and re-fetch."""

    status_code = 409
    code = "conflict"
    default_message = "Account is already being set up. Please refresh."


class RateLimited(PipelineError):
    """Too many requests for the same destination."""

    status_code = 429
    code = "rate_limited"
    retryable = True
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamUnavailable(PipelineError):
    """A store, processor or channel call failed. Retry with backoff."""

    status_code = 503
    code = "upstream_unavailable"
    retryable = True
    default_message = "Service temporarily unavailable. Please try again."


class CompensationFailed(PipelineError):
    """Cleanup after a failed provisioning step failed too."""

    status_code = 500
    code = "compensation_failed"
    default_message = "Account setup failed. Our team has been notified."

    def __init__(self, message: str | None = None, orphaned_identity_id: int | None = None) -> None:
        super().__init__(message)
        self.orphaned_identity_id = orphaned_identity_id


class SignatureInvalid(PipelineError):
    """A webhook payload failed signature verification. Never processed."""

    status_code = 400
    code = "signature_invalid"
    default_message = "Invalid webhook signature."
