"""
Shared fixtures: in-memory database, fake Stripe client and plan catalog.
"""
import copy
import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from members_api.db.base import Base
from members_api.db import models  # noqa: F401
from members_api.db.models.member import Member
from members_api.services.reconciliation_service import ReconciliationService
from members_api.services.stripe_plans import StripePlansService


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

START_DATE = 1_700_000_000
PERIOD_END = 1_702_592_000

PLANS = [
    {"id": "price_monthly_eur", "nickname": "Monthly", "interval": "month", "currency": "EUR", "amount": 500},
    {"id": "price_yearly_eur", "nickname": "Yearly", "interval": "year", "currency": "eur", "amount": 5000},
    {"id": "price_monthly_usd", "nickname": "Monthly", "interval": "month", "currency": "usd", "amount": 500},
    {"id": "price_monthly_gbp", "nickname": None, "interval": "month", "currency": "gbp", "amount": 400},
    {"id": "price_comp_eur", "nickname": "Complimentary", "interval": "year", "currency": "eur", "amount": 0},
    {"id": "price_comp_usd", "nickname": "Complimentary", "interval": "year", "currency": "usd", "amount": 0},
    {"id": "price_comp_gbp", "nickname": "Complimentary", "interval": "year", "currency": "gbp", "amount": 0},
]


class FakeStripeAPIService:
    """
    In-memory stand-in for StripeAPIService.

    Objects are plain dicts shaped like Stripe's. Every call is recorded in
    ``calls`` as (method, key); ``fail(method, key, exc)`` makes a call raise.
    """

    def __init__(self, configured: bool = True, plans=None):
        self.configured = configured
        self.plans = {plan["id"]: dict(plan) for plan in (plans or PLANS)}
        self.customers = {}
        self.subscriptions = {}
        self.payment_methods = {}
        self.calls = []
        self._failures = {}
        self._ids = itertools.count(1)

    # Test helpers

    def fail(self, method: str, key: str, exc: Exception):
        self._failures[(method, key)] = exc

    def method_calls(self, method: str):
        return [key for name, key in self.calls if name == method]

    def add_customer(self, customer_id: str, email: str = "member@example.com", name: str = None, deleted: bool = False):
        self.customers[customer_id] = {"id": customer_id, "email": email, "name": name, "deleted": deleted}
        return self.customers[customer_id]

    def add_payment_method(self, payment_method_id: str, last4: str = "4242", type: str = "card"):
        self.payment_methods[payment_method_id] = {
            "id": payment_method_id,
            "type": type,
            "card": {"last4": last4} if type == "card" else None,
        }
        return self.payment_methods[payment_method_id]

    def add_subscription(
        self,
        subscription_id: str,
        customer_id: str,
        plan_id: str = "price_monthly_eur",
        status: str = "active",
        default_payment_method=None,
        cancel_at_period_end: bool = False,
        metadata: dict = None,
    ):
        self.subscriptions[subscription_id] = {
            "id": subscription_id,
            "customer": customer_id,
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "metadata": metadata or {},
            "current_period_end": PERIOD_END,
            "start_date": START_DATE,
            "default_payment_method": default_payment_method,
            "plan": dict(self.plans[plan_id]),
            "items": {"data": [{"id": f"si_{subscription_id}", "plan": dict(self.plans[plan_id])}]},
        }
        return self.subscriptions[subscription_id]

    def _record(self, method: str, key: str):
        self.calls.append((method, key))
        exc = self._failures.get((method, key))
        if exc is not None:
            raise exc

    # StripeAPIService interface

    def get_customer(self, customer_id):
        self._record("get_customer", customer_id)
        customer = self.customers.get(customer_id)
        if customer is None:
            return None
        result = copy.deepcopy(customer)
        result["subscriptions"] = {
            "data": [copy.deepcopy(s) for s in self.subscriptions.values() if s["customer"] == customer_id]
        }
        return result

    def create_customer(self, email, name=None):
        customer_id = f"cus_new_{next(self._ids)}"
        self._record("create_customer", email)
        return copy.deepcopy(self.add_customer(customer_id, email=email, name=name))

    def update_customer_email(self, customer_id, email):
        self._record("update_customer_email", customer_id)
        self.customers[customer_id]["email"] = email
        return copy.deepcopy(self.customers[customer_id])

    def get_subscription(self, subscription_id):
        self._record("get_subscription", subscription_id)
        return copy.deepcopy(self.subscriptions[subscription_id])

    def create_subscription(self, customer_id, plan_id):
        subscription_id = f"sub_new_{next(self._ids)}"
        self._record("create_subscription", customer_id)
        return copy.deepcopy(self.add_subscription(subscription_id, customer_id, plan_id=plan_id))

    def change_subscription_plan(self, subscription_id, plan_id):
        self._record("change_subscription_plan", subscription_id)
        subscription = self.subscriptions[subscription_id]
        subscription["plan"] = dict(self.plans[plan_id])
        subscription["items"]["data"][0]["plan"] = dict(self.plans[plan_id])
        subscription["cancel_at_period_end"] = False
        return copy.deepcopy(subscription)

    def cancel_subscription(self, subscription_id):
        self._record("cancel_subscription", subscription_id)
        self.subscriptions[subscription_id]["status"] = "canceled"
        return copy.deepcopy(self.subscriptions[subscription_id])

    def cancel_subscription_at_period_end(self, subscription_id, reason=None):
        self._record("cancel_subscription_at_period_end", subscription_id)
        self.subscriptions[subscription_id]["cancel_at_period_end"] = True
        return copy.deepcopy(self.subscriptions[subscription_id])

    def continue_subscription_at_period_end(self, subscription_id):
        self._record("continue_subscription_at_period_end", subscription_id)
        self.subscriptions[subscription_id]["cancel_at_period_end"] = False
        return copy.deepcopy(self.subscriptions[subscription_id])

    def get_card_payment_method(self, payment_method_id):
        self._record("get_card_payment_method", payment_method_id)
        payment_method = self.payment_methods.get(payment_method_id)
        if payment_method is None or payment_method["type"] != "card":
            return None
        return copy.deepcopy(payment_method)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def stripe_api():
    return FakeStripeAPIService()


@pytest.fixture
def plans_service():
    return StripePlansService(PLANS)


@pytest.fixture
def service(db, stripe_api, plans_service):
    return ReconciliationService(db=db, stripe_api_service=stripe_api, stripe_plans_service=plans_service)


@pytest.fixture
def member(db):
    """Create a test member."""
    member = Member(email="member@example.com", name="Test Member")
    db.add(member)
    db.commit()
    db.refresh(member)
    return member
