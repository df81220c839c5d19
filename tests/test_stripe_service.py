"""
Unit tests for the Stripe client wrapper.
Stripe SDK calls are monkeypatched; no network access happens.
"""
import pytest
import stripe

from members_api.services.stripe_service import StripeAPIService


class RecordingCall:
    """Callable standing in for a Stripe SDK classmethod."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def client():
    return StripeAPIService(api_key="sk_test_123", api_version="2024-06-20")


def test_unconfigured_client():
    """Test a client without key reports unconfigured and refuses calls."""
    client = StripeAPIService(api_key=None)

    assert client.configured is False
    with pytest.raises(RuntimeError):
        client.get_subscription("sub_1")


def test_requests_carry_api_key_and_version(client, monkeypatch):
    """Test every request is sent with the configured key and API version."""
    retrieve = RecordingCall(result={"id": "sub_1"})
    monkeypatch.setattr(stripe.Subscription, "retrieve", retrieve)

    client.get_subscription("sub_1")

    args, kwargs = retrieve.calls[0]
    assert args == ("sub_1",)
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["stripe_version"] == "2024-06-20"
    assert kwargs["expand"] == ["default_payment_method"]


def test_get_customer_expands_subscriptions(client, monkeypatch):
    """Test customers are retrieved with their subscriptions."""
    retrieve = RecordingCall(result={"id": "cus_1", "subscriptions": {"data": []}})
    monkeypatch.setattr(stripe.Customer, "retrieve", retrieve)

    assert client.get_customer("cus_1")["id"] == "cus_1"
    assert retrieve.calls[0][1]["expand"] == ["subscriptions"]


def test_get_missing_customer_returns_none(client, monkeypatch):
    """Test a resource_missing error means the customer does not exist."""
    error = stripe.InvalidRequestError("No such customer: 'cus_x'", "id", code="resource_missing")
    monkeypatch.setattr(stripe.Customer, "retrieve", RecordingCall(error=error))

    assert client.get_customer("cus_x") is None


def test_get_customer_propagates_other_errors(client, monkeypatch):
    """Test other Stripe errors are raised unchanged."""
    error = stripe.APIConnectionError("Network down")
    monkeypatch.setattr(stripe.Customer, "retrieve", RecordingCall(error=error))

    with pytest.raises(stripe.APIConnectionError):
        client.get_customer("cus_1")


def test_change_subscription_plan_replaces_item(client, monkeypatch):
    """Test the plan change targets the existing item and lifts a pending cancellation."""
    monkeypatch.setattr(
        stripe.Subscription,
        "retrieve",
        RecordingCall(result={"id": "sub_1", "items": {"data": [{"id": "si_1"}]}}),
    )
    modify = RecordingCall(result={"id": "sub_1"})
    monkeypatch.setattr(stripe.Subscription, "modify", modify)

    client.change_subscription_plan("sub_1", "price_comp")

    args, kwargs = modify.calls[0]
    assert args == ("sub_1",)
    assert kwargs["items"] == [{"id": "si_1", "price": "price_comp"}]
    assert kwargs["proration_behavior"] == "always_invoice"
    assert kwargs["cancel_at_period_end"] is False
    assert kwargs["metadata"] == {"cancellation_reason": ""}


def test_cancel_at_period_end_records_reason(client, monkeypatch):
    """Test a cancellation reason is stored in the subscription metadata."""
    modify = RecordingCall(result={"id": "sub_1"})
    monkeypatch.setattr(stripe.Subscription, "modify", modify)

    client.cancel_subscription_at_period_end("sub_1", reason="Moving abroad")

    kwargs = modify.calls[0][1]
    assert kwargs["cancel_at_period_end"] is True
    assert kwargs["metadata"] == {"cancellation_reason": "Moving abroad"}


def test_create_subscription_uses_price(client, monkeypatch):
    """Test new subscriptions are created with a single price item."""
    create = RecordingCall(result={"id": "sub_new"})
    monkeypatch.setattr(stripe.Subscription, "create", create)

    client.create_subscription("cus_1", "price_comp")

    kwargs = create.calls[0][1]
    assert kwargs["customer"] == "cus_1"
    assert kwargs["items"] == [{"price": "price_comp"}]


def test_non_card_payment_method_returns_none(client, monkeypatch):
    """Test only card payment methods are returned."""
    monkeypatch.setattr(
        stripe.PaymentMethod,
        "retrieve",
        RecordingCall(result={"id": "pm_1", "type": "sepa_debit"}),
    )
    assert client.get_card_payment_method("pm_1") is None


def test_card_payment_method_is_returned(client, monkeypatch):
    """Test card payment methods are returned as-is."""
    payment_method = {"id": "pm_1", "type": "card", "card": {"last4": "4242"}}
    monkeypatch.setattr(stripe.PaymentMethod, "retrieve", RecordingCall(result=payment_method))

    assert client.get_card_payment_method("pm_1") == payment_method


def test_network_retries_apply_process_wide(monkeypatch):
    """Test a configured client sets the SDK-wide retry count."""
    monkeypatch.setattr(stripe, "max_network_retries", 0)

    StripeAPIService(api_key="sk_test_123", max_network_retries=5)
    assert stripe.max_network_retries == 5

    StripeAPIService(api_key=None, max_network_retries=1)
    assert stripe.max_network_retries == 5
