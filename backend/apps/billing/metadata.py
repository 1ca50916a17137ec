"""
Correlation metadata carried on Stripe Checkout Sessions.

The same bag is set on the session and on ``subscription_data.metadata``,
so every later event (session, subscription, invoice) can be attributed
to a tenant without any request context.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CheckoutMetadata:
    hub_id: int | None
    customer_type: str = "company"
    user_id: int | None = None
    company_id: int | None = None
    email: str = ""
    signup_id: str = ""

    def to_stripe(self) -> dict[str, str]:
        """Stripe metadata values must be strings; empty values are left out."""
        values = {
            "hub_id": self.hub_id,
            "customer_type": self.customer_type,
            "user_id": self.user_id,
            "company_id": self.company_id,
            "email": self.email,
            "signup_id": self.signup_id,
        }
        return {key: str(value) for key, value in values.items() if value not in (None, "")}

    @classmethod
    def from_stripe(cls, metadata: Mapping[str, Any] | None) -> "CheckoutMetadata":
        metadata = dict(metadata or {})
        return cls(
            hub_id=_to_int(metadata.get("hub_id")),
            customer_type=metadata.get("customer_type") or "company",
            user_id=_to_int(metadata.get("user_id")),
            company_id=_to_int(metadata.get("company_id")),
            email=(metadata.get("email") or "").strip().lower(),
            signup_id=metadata.get("signup_id") or "",
        )
