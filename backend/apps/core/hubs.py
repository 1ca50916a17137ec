"""
Hub (tenant family) identifiers.

The hub is the routing key every signup, company, lead and customer belongs to.
"""

from django.db import models


class Hub(models.IntegerChoices):
    PERCYTECH = 1, "PercyTech"
    GNYMBLE = 2, "Gnymble"
    PERCYMD = 3, "PercyMD"
    PERCYTEXT = 4, "PercyText"


# Account number prefixes, e.g. GNYMBLE-000042
HUB_PREFIXES = {
    Hub.PERCYTECH: "PERCY",
    Hub.GNYMBLE: "GNYMBLE",
    Hub.PERCYMD: "PERCYMD",
    Hub.PERCYTEXT: "PERCYTEXT",
}


def is_valid_hub(value: object) -> bool:
    return value in Hub.values


def hub_name(hub: int) -> str:
    """Display name used in outbound messages."""
    try:
        return Hub(hub).label
    except ValueError:
        return "SMS Hub"


def hub_prefix(hub: int) -> str:
    return HUB_PREFIXES.get(hub, "HUB")
