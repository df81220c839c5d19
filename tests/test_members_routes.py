"""
Integration tests for the admin /members endpoints.
"""
import pytest
import stripe
from fastapi.testclient import TestClient

from members_api.main import app
from members_api.core.auth_dependency import (
    get_current_admin,
    get_db,
    get_reconciliation_service,
    get_stripe_api_service,
    get_stripe_plans_service,
)
from members_api.db.models.stripe_subscription import StripeCustomerSubscription
from members_api.services.reconciliation_service import ReconciliationService

from conftest import FakeStripeAPIService


@pytest.fixture
def client(db, stripe_api, plans_service):
    """Test client with database, Stripe and admin auth overridden."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_admin] = lambda: "admin@example.com"
    app.dependency_overrides[get_stripe_api_service] = lambda: stripe_api
    app.dependency_overrides[get_stripe_plans_service] = lambda: plans_service
    app.dependency_overrides[get_reconciliation_service] = lambda: ReconciliationService(
        db=db, stripe_api_service=stripe_api, stripe_plans_service=plans_service
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def linked(client, stripe_api, member):
    """Member linked to cus_1 with active subscription sub_1."""
    stripe_api.add_customer("cus_1", email=member.email)
    stripe_api.add_subscription("sub_1", "cus_1")
    response = client.post(f"/members/{member.id}/stripe/customers", json={"customer_id": "cus_1"})
    assert response.status_code == 200
    return member


def test_requires_admin_token(db):
    """Test the members API rejects requests without a bearer token."""
    response = TestClient(app).get("/members")
    assert response.status_code == 401


def test_create_and_get_member(client):
    """Test creating a member returns 201 and the member can be read back."""
    response = client.post("/members", json={"email": "Reader@Example.com", "labels": ["VIP", {"name": "Press"}]})

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "reader@example.com"
    assert sorted(label["name"] for label in data["labels"]) == ["Press", "VIP"]

    response = client.get(f"/members/{data['id']}")
    assert response.status_code == 200
    assert response.json()["email"] == "reader@example.com"


def test_create_duplicate_member(client, member):
    """Test creating a member with an existing email returns 409."""
    response = client.post("/members", json={"email": member.email})
    assert response.status_code == 409


def test_get_missing_member(client):
    """Test an unknown member returns 404 with an error code."""
    response = client.get("/members/999")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "MEMBER_NOT_FOUND"


def test_list_members(client, member):
    """Test the member list includes pagination metadata."""
    response = client.get("/members", params={"limit": 5})

    assert response.status_code == 200
    data = response.json()
    assert [m["email"] for m in data["members"]] == [member.email]
    assert data["meta"]["pagination"]["total"] == 1
    assert data["meta"]["pagination"]["limit"] == 5


def test_update_member(client, member):
    """Test updating a member applies only the given fields."""
    response = client.put(f"/members/{member.id}", json={"note": "Founding member"})

    assert response.status_code == 200
    assert response.json()["note"] == "Founding member"
    assert response.json()["name"] == "Test Member"


@pytest.mark.parametrize("field", ["email", "subscribed"])
def test_update_member_ignores_null_required_field(client, member, field):
    """Test an explicit null for email or subscribed keeps the stored value."""
    member_id, email = member.id, member.email

    response = client.put(f"/members/{member_id}", json={field: None, "name": "Renamed"})

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == email
    assert data["subscribed"] is True
    assert data["name"] == "Renamed"


def test_update_member_email_taken(client, member):
    """Test changing the email to another member's email returns 409."""
    other = client.post("/members", json={"email": "other@example.com"}).json()

    response = client.put(f"/members/{other['id']}", json={"email": "Member@Example.com"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "MEMBER_EMAIL_TAKEN"
    assert client.get(f"/members/{other['id']}").json()["email"] == "other@example.com"


def test_link_customer(client, stripe_api, linked):
    """Test linking a customer mirrors it and its subscriptions."""
    response = client.get(f"/members/{linked.id}")

    assert [c["customer_id"] for c in response.json()["stripe_customers"]] == ["cus_1"]


def test_link_missing_customer(client, member):
    """Test linking a customer unknown to Stripe returns 404."""
    response = client.post(f"/members/{member.id}/stripe/customers", json={"customer_id": "cus_missing"})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "STRIPE_CUSTOMER_NOT_FOUND"


def test_link_customer_rejects_malformed_id(client, member):
    """Test request validation of the customer ID."""
    response = client.post(f"/members/{member.id}/stripe/customers", json={"customer_id": "sub_1"})
    assert response.status_code == 422


def test_link_customer_stripe_failure(client, stripe_api, member):
    """Test Stripe errors map to 502."""
    stripe_api.fail("get_customer", "cus_1", stripe.APIConnectionError("Network down"))

    response = client.post(f"/members/{member.id}/stripe/customers", json={"customer_id": "cus_1"})

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "STRIPE_ERROR"


def test_link_subscription_unlinked_customer(client, stripe_api, member):
    """Test linking a subscription of an unlinked customer returns 409."""
    stripe_api.add_customer("cus_1")
    stripe_api.add_subscription("sub_1", "cus_1")

    response = client.post(
        f"/members/{member.id}/stripe/subscriptions",
        json={"subscription_id": "sub_1", "customer_id": "cus_1"},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "UNLINKED_CUSTOMER"


def test_update_subscription_cancel_at_period_end(client, linked):
    """Test toggling cancel-at-period-end through the API."""
    response = client.put(f"/members/{linked.id}/subscriptions/sub_1", json={"cancel_at_period_end": True})

    assert response.status_code == 200
    assert response.json()["cancel_at_period_end"] is True


def test_update_subscription_requires_flag(client, stripe_api, linked):
    """Test a missing flag returns 422 without calling Stripe."""
    stripe_api.calls.clear()

    response = client.put(f"/members/{linked.id}/subscriptions/sub_1", json={})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "INVALID_ARGUMENT"
    assert stripe_api.calls == []


def test_update_unknown_subscription(client, linked):
    """Test an unknown subscription returns 404."""
    response = client.put(f"/members/{linked.id}/subscriptions/sub_unknown", json={"cancel_at_period_end": False})
    assert response.status_code == 404


def test_set_and_cancel_complimentary(client, db, linked):
    """Test granting then revoking complimentary access."""
    response = client.post(f"/members/{linked.id}/comped")

    assert response.status_code == 200
    data = response.json()
    assert [s["plan_id"] for s in data["subscriptions"]] == ["price_comp_eur"]
    assert data["customer_probes"] == [
        {"customer_id": "cus_1", "success": True, "usable": True, "error": None}
    ]

    response = client.delete(f"/members/{linked.id}/comped")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["subscriptions"] == [
        {"subscription_id": "sub_1", "success": True, "status": "canceled", "error": None}
    ]


def test_complimentary_without_stripe(client, db, plans_service, member):
    """Test Stripe operations return 503 when Stripe is not configured."""
    app.dependency_overrides[get_reconciliation_service] = lambda: ReconciliationService(
        db=db,
        stripe_api_service=FakeStripeAPIService(configured=False),
        stripe_plans_service=plans_service,
    )

    response = client.post(f"/members/{member.id}/comped")

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "GATEWAY_NOT_CONFIGURED"


def test_delete_member_cancels_subscriptions(client, db, stripe_api, linked):
    """Test deleting a member can cancel its Stripe subscriptions first."""
    member_id = linked.id
    response = client.delete(f"/members/{member_id}", params={"cancel_subscriptions": True})

    assert response.status_code == 204
    assert stripe_api.method_calls("cancel_subscription") == ["sub_1"]
    assert db.query(StripeCustomerSubscription).count() == 0
    assert client.get(f"/members/{member_id}").status_code == 404


def test_system_health(client):
    """Test the health endpoint reports database, Stripe and plan status."""
    response = client.get("/system/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "connected"
    assert data["stripe"] == "configured"
    assert data["plans"] == 7
