"""
Account number allocation.
"""

from django.db import transaction
from django.db.models import F

from apps.core.hubs import hub_prefix
from apps.core.logging import get_logger
from apps.companies.models import AccountNumberSequence

logger = get_logger(__name__)


def next_account_number(hub: int, kind: str = AccountNumberSequence.Kind.COMPANY) -> str:
    """
    Allocate the next account number for a hub.

    Company numbers look like ``GNYMBLE-000042``; user numbers carry a ``U``
    marker (``GNYMBLE-U000007``). Numbers are never reused, even if the
    provisioning call that drew one later fails.
    """
    with transaction.atomic():
        sequence, _ = AccountNumberSequence.objects.select_for_update().get_or_create(hub=hub, kind=kind)
        sequence.last_value = F("last_value") + 1
        sequence.save(update_fields=["last_value"])
        sequence.refresh_from_db(fields=["last_value"])

    value = sequence.last_value
    marker = "U" if kind == AccountNumberSequence.Kind.USER else ""
    account_number = f"{hub_prefix(hub)}-{marker}{value:06d}"
    logger.debug("account_number_allocated", hub=hub, kind=kind, account_number=account_number)
    return account_number
