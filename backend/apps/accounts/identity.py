"""
Identity store access for provisioning.

Wraps the auth user table behind create/delete calls so the provisioner
can compensate a half-built tenant and tests can inject failures.
"""

from dataclasses import dataclass

from django.db import DatabaseError, IntegrityError

from apps.accounts.models import User
from apps.core.logging import get_logger

logger = get_logger(__name__)


class IdentityProviderError(Exception):
    """The identity store rejected or failed a call."""

    pass


@dataclass(frozen=True)
class Identity:
    user: User
    created: bool


class DjangoIdentityProvider:
    """Identities backed by ``accounts.User``."""

    def create_identity(self, email: str, name: str = "") -> Identity:
        """
        Create an identity, or return the existing one for this email.

        ``created`` tells the caller whether this call owns the identity and
        may delete it during compensation.
        """
        email = email.strip().lower()
        existing = User.objects.filter(email=email).first()
        if existing is not None:
            return Identity(user=existing, created=False)

        try:
            user = User.objects.create_user(email=email, name=name)
        except IntegrityError:
            # Concurrent insert won the race, fetch the winner
            return Identity(user=User.objects.get(email=email), created=False)
        except DatabaseError as e:
            raise IdentityProviderError(f"Could not create identity: {e}") from e

        logger.info("identity_created", user_id=user.id)
        return Identity(user=user, created=True)

    def delete_identity(self, user_id: int) -> None:
        try:
            User.objects.filter(pk=user_id).delete()
        except DatabaseError as e:
            raise IdentityProviderError(f"Could not delete identity {user_id}: {e}") from e
        logger.info("identity_deleted", user_id=user_id)
