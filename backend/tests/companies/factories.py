"""
Factory Boy factories for companies.
"""

import factory
from factory.django import DjangoModelFactory

from apps.companies.models import Company
from apps.core.hubs import Hub


class CompanyFactory(DjangoModelFactory):
    """Factory for Company model."""

    class Meta:
        model = Company

    hub = Hub.GNYMBLE
    public_name = factory.Faker("company")
    legal_name = factory.LazyAttribute(lambda o: f"{o.public_name} LLC")
    account_number = factory.Sequence(lambda n: f"GNYMBLE-{n + 1:06d}")
    customer_type = "company"
