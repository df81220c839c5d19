"""
Helpers for reading Stripe API objects.

Stripe returns either an ID string or an expanded object for reference
fields depending on the ``expand`` parameters of the request.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class UnsetPaymentMethod:
    """The subscription has no default payment method."""


@dataclass(frozen=True)
class PaymentMethodReference:
    """The default payment method is a bare ID (pm_xxx)."""
    id: str


@dataclass(frozen=True)
class ExpandedPaymentMethod:
    """The default payment method was expanded into a full object."""
    payment_method: Mapping[str, Any] = field(hash=False, compare=False)

    @property
    def id(self) -> str:
        return self.payment_method["id"]


PaymentMethodRef = Union[UnsetPaymentMethod, PaymentMethodReference, ExpandedPaymentMethod]


def parse_payment_method_ref(value: Any) -> PaymentMethodRef:
    """Classify a subscription's ``default_payment_method`` field."""
    if not value:
        return UnsetPaymentMethod()
    if isinstance(value, str):
        return PaymentMethodReference(value)
    if isinstance(value, Mapping):
        return ExpandedPaymentMethod(value)
    raise TypeError(f"Unexpected default_payment_method: {type(value).__name__}")


def payment_method_id(ref: PaymentMethodRef) -> Optional[str]:
    """ID to fetch card details with, or None when no payment method is set."""
    if isinstance(ref, UnsetPaymentMethod):
        return None
    if isinstance(ref, (PaymentMethodReference, ExpandedPaymentMethod)):
        return ref.id
    raise TypeError(f"Unknown payment method reference: {ref!r}")


def card_last4(payment_method: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not payment_method:
        return None
    card = payment_method.get("card") or {}
    return card.get("last4") or None


def reference_id(value: Any) -> Optional[str]:
    """ID of a reference field that may be a string or an expanded object."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    return value["id"]


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Stripe epoch seconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    items = subscription.get("items") or {}
    data = items.get("data") or []
    return data[0] if data else {}


def subscription_plan(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Plan of a single-item subscription.

    Newer API versions drop the top-level ``plan``; fall back to the first item.
    """
    plan = subscription.get("plan")
    if plan:
        return plan
    item = _first_item(subscription)
    plan = item.get("plan") or item.get("price")
    if not plan:
        raise ValueError(f"Subscription {subscription.get('id')} has no plan")
    if "interval" not in plan and plan.get("recurring"):
        # Price objects keep the interval under "recurring" and the amount as unit_amount
        return {
            "id": plan["id"],
            "nickname": plan.get("nickname"),
            "interval": plan["recurring"]["interval"],
            "amount": plan.get("unit_amount"),
            "currency": plan["currency"],
        }
    return plan


def subscription_period_end(subscription: Mapping[str, Any]) -> Optional[int]:
    value = subscription.get("current_period_end")
    if value is None:
        value = _first_item(subscription).get("current_period_end")
    return value
