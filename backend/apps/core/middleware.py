"""
Core middleware.
"""

import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.core.logging import bind_contextvars, clear_contextvars
from apps.core.utils import get_client_ip

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware:
    """
    Binds a per-request trace_id (and client IP) to structured logs.

    Honors an incoming X-Request-ID so a trace can be followed across the
    frontend, this service and Stripe webhook retries, and echoes it back.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.request_id = request_id  # type: ignore[attr-defined]

        clear_contextvars()
        bind_contextvars(request_id=request_id, client_ip=get_client_ip(request))
        try:
            response = self.get_response(request)
        finally:
            clear_contextvars()

        response[REQUEST_ID_HEADER] = request_id
        return response
