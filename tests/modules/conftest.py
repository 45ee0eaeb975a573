"""
Fixtures for entity facade tests: one workflow per entity over the shared
in-memory store, with a seeded RNG so generated identifiers are stable.
"""

import random

import pytest

from workflow_modules import (
    EmployeeWorkflow,
    PaymentWorkflow,
    SubscriberWorkflow,
    TicketWorkflow,
)


@pytest.fixture
def subscribers(store, clock):
    return SubscriberWorkflow(
        store, clock=clock, rng=random.Random(7), labels={"siteName": "Site Name"},
    )


@pytest.fixture
def payments(store, clock):
    return PaymentWorkflow(store, clock=clock, rng=random.Random(11))


@pytest.fixture
def employees(store, clock):
    return EmployeeWorkflow(store, clock=clock, rng=random.Random(13))


@pytest.fixture
def tickets(store, clock):
    return TicketWorkflow(store, clock=clock, rng=random.Random(17))


@pytest.fixture
def subscriber_fields():
    return {
        "customerName": "Acme Retail",
        "siteName": "Chennai DC",
        "siteCode": "CHN-01",
        "siteAddress": "12 Anna Salai, Chennai",
        "localContact": {"name": "Ravi", "contact": "9840000000"},
        "ispInfo": {
            "name": "Airtel",
            "broadbandPlan": "100 Mbps",
            "numberOfMonths": 12,
            "otc": 500,
            "mrc": 1000,
            "renewalDate": "2024-07-01",
        },
    }
