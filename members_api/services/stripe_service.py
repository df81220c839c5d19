"""
Stripe service for the customer and subscription calls reconciliation needs.

Every request carries the configured API key and API version explicitly, so
clients with different keys (e.g. test and live) can coexist in one process.
The network retry count is a process-wide SDK setting: the last configured
client sets it for all of them.
"""
import logging
from typing import Any, Callable, Optional
import stripe

logger = logging.getLogger(__name__)


class StripeAPIService:
    """
    Thin wrapper over the Stripe SDK.

    ``configured`` is False when no secret key was provided; callers must
    check it before using any other method.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_version: Optional[str] = None,
        max_network_retries: int = 2
    ):
        self._api_key = api_key
        self._api_version = api_version

        if api_key:
            if stripe.max_network_retries != max_network_retries:
                logger.info(f"Setting Stripe max_network_retries={max_network_retries} for all clients")
            stripe.max_network_retries = max_network_retries
        else:
            logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _request_options(self) -> dict:
        options = {"api_key": self._api_key}
        if self._api_version:
            options["stripe_version"] = self._api_version
        return options

    def _call(self, description: str, func: Callable, *args, **kwargs) -> Any:
        """Run a Stripe call with request options; errors are logged and re-raised unchanged."""
        if not self.configured:
            raise RuntimeError(f"Stripe not configured - cannot {description}")
        try:
            return func(*args, **kwargs, **self._request_options())
        except stripe.StripeError as e:
            logger.error(f"Stripe error during {description}: {e}")
            raise

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    def get_customer(self, customer_id: str):
        """
        Retrieve a customer with its subscriptions expanded.

        Returns:
            Stripe Customer object (possibly marked ``deleted``), or None if Stripe has no such customer
        """
        try:
            return self._call(
                f"retrieve customer {customer_id}",
                stripe.Customer.retrieve,
                customer_id,
                expand=["subscriptions"],
            )
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                logger.info(f"Stripe customer not found: customer_id={customer_id}")
                return None
            raise

    def create_customer(self, email: str, name: Optional[str] = None):
        """Create a customer identified by the member's email."""
        params = {"email": email}
        if name:
            params["name"] = name
        customer = self._call("create customer", stripe.Customer.create, **params)
        logger.info(f"Created Stripe customer: customer_id={customer['id']}")
        return customer

    def update_customer_email(self, customer_id: str, email: str):
        customer = self._call(
            f"update email of customer {customer_id}",
            stripe.Customer.modify,
            customer_id,
            email=email,
        )
        logger.info(f"Updated Stripe customer email: customer_id={customer_id}")
        return customer

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def get_subscription(self, subscription_id: str):
        """Retrieve a subscription with its default payment method expanded."""
        return self._call(
            f"retrieve subscription {subscription_id}",
            stripe.Subscription.retrieve,
            subscription_id,
            expand=["default_payment_method"],
        )

    def create_subscription(self, customer_id: str, plan_id: str):
        subscription = self._call(
            f"create subscription for customer {customer_id}",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": plan_id}],
            expand=["default_payment_method"],
        )
        logger.info(
            f"Created Stripe subscription: subscription_id={subscription['id']}, "
            f"customer_id={customer_id}, plan_id={plan_id}"
        )
        return subscription

    def change_subscription_plan(self, subscription_id: str, plan_id: str):
        """
        Move a subscription's single item to another plan.

        Any pending cancellation is lifted and the change is invoiced right away.
        """
        subscription = self.get_subscription(subscription_id)
        item_id = subscription["items"]["data"][0]["id"]

        updated = self._call(
            f"change plan of subscription {subscription_id}",
            stripe.Subscription.modify,
            subscription_id,
            items=[{"id": item_id, "price": plan_id}],
            proration_behavior="always_invoice",
            cancel_at_period_end=False,
            metadata={"cancellation_reason": ""},
        )
        logger.info(f"Changed Stripe subscription plan: subscription_id={subscription_id}, plan_id={plan_id}")
        return updated

    def cancel_subscription(self, subscription_id: str):
        """Cancel a subscription immediately."""
        subscription = self._call(
            f"cancel subscription {subscription_id}",
            stripe.Subscription.cancel,
            subscription_id,
        )
        logger.info(f"Canceled Stripe subscription: subscription_id={subscription_id}")
        return subscription

    def cancel_subscription_at_period_end(self, subscription_id: str, reason: Optional[str] = None):
        params = {"cancel_at_period_end": True}
        if reason:
            params["metadata"] = {"cancellation_reason": reason}
        subscription = self._call(
            f"cancel subscription {subscription_id} at period end",
            stripe.Subscription.modify,
            subscription_id,
            **params,
        )
        logger.info(f"Stripe subscription set to cancel at period end: subscription_id={subscription_id}")
        return subscription

    def continue_subscription_at_period_end(self, subscription_id: str):
        subscription = self._call(
            f"continue subscription {subscription_id} at period end",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=False,
            metadata={"cancellation_reason": ""},
        )
        logger.info(f"Stripe subscription set to continue at period end: subscription_id={subscription_id}")
        return subscription

    # -------------------------------------------------------------------------
    # Payment methods
    # -------------------------------------------------------------------------

    def get_card_payment_method(self, payment_method_id: str):
        """Retrieve a payment method, or None when it is not a card."""
        payment_method = self._call(
            f"retrieve payment method {payment_method_id}",
            stripe.PaymentMethod.retrieve,
            payment_method_id,
        )
        if payment_method.get("type") != "card":
            return None
        return payment_method
