"""
Subscription reconciliation service.

Keeps the local mirror of Stripe customers and subscriptions in line with
Stripe, and grants or revokes complimentary access for members.

Every operation runs its steps one after another. Writes commit as they
happen, so a failure part-way through keeps earlier progress and skips the
rest. Only the customer probe of the complimentary grant and the
cancel-all loop absorb per-item failures; they report them as
``ItemOutcome`` values and through the log.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple
from sqlalchemy.orm import Session

from members_api.core.exceptions import (
    ComplimentaryPlanNotFoundError,
    GatewayNotConfiguredError,
    InvalidArgumentError,
    MemberNotFoundError,
    SubscriptionNotFoundError,
    UnlinkedCustomerError,
)
from members_api.db.models.member import Member
from members_api.db.models.stripe_customer import StripeCustomer
from members_api.db.models.stripe_subscription import StripeCustomerSubscription
from members_api.services.mirror_store import MirrorStore
from members_api.services.stripe_objects import (
    card_last4,
    from_timestamp,
    parse_payment_method_ref,
    payment_method_id,
    reference_id,
    subscription_period_end,
    subscription_plan,
)
from members_api.services.stripe_plans import StripePlansService
from members_api.services.stripe_service import StripeAPIService

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    """Result of one step of a best-effort loop."""
    item_id: str
    result: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ComplimentaryGrant:
    """Subscriptions linked by a complimentary grant, plus how each stored customer was probed."""
    subscriptions: List[StripeCustomerSubscription]
    customer_probes: List[ItemOutcome] = field(default_factory=list)


class ReconciliationService:
    """
    Links Stripe state into the mirror and manages complimentary subscriptions.

    Args:
        db: Database session
        stripe_api_service: Stripe client (may be unconfigured)
        stripe_plans_service: Plan catalog used to resolve complimentary plans
    """

    def __init__(
        self,
        db: Session,
        stripe_api_service: StripeAPIService,
        stripe_plans_service: StripePlansService
    ):
        self.db = db
        self.store = MirrorStore(db)
        self.stripe = stripe_api_service
        self.plans = stripe_plans_service

    def _require_stripe(self, operation: str) -> None:
        if not self.stripe.configured:
            raise GatewayNotConfiguredError(operation)

    def _get_member(self, member_id: int) -> Member:
        member = self.store.find_member(member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    def upsert_customer(self, member_id: int, customer: Mapping[str, Any]) -> StripeCustomer:
        """Mirror a Stripe customer for a member, overwriting any existing row."""
        return self.store.upsert_customer({
            "customer_id": customer["id"],
            "member_id": member_id,
            "name": customer.get("name"),
            "email": customer.get("email"),
        })

    def link_customer(self, member_id: int, customer_id: str) -> Optional[StripeCustomer]:
        """
        Link an existing Stripe customer, and all its subscriptions, to a member.

        Args:
            member_id: Member ID
            customer_id: Stripe customer ID (cus_xxx)

        Returns:
            The new customer row, or None when Stripe has no such customer

        Raises:
            GatewayNotConfiguredError: Stripe is not configured
            CustomerAlreadyLinkedError: The customer already has a local row
            UnlinkedCustomerError / stripe.StripeError: From linking a subscription;
                subscriptions linked before the failure stay linked
        """
        self._require_stripe("link Stripe Customer")
        self._get_member(member_id)

        customer = self.stripe.get_customer(customer_id)
        if not customer or customer.get("deleted"):
            logger.info(f"Skipping link of missing Stripe customer: customer_id={customer_id}")
            return None

        row = self.store.add_customer({
            "customer_id": customer_id,
            "member_id": member_id,
            "name": customer.get("name"),
            "email": customer.get("email"),
        })

        subscriptions = (customer.get("subscriptions") or {}).get("data") or []
        for subscription in subscriptions:
            self.link_subscription(member_id, subscription)

        return row

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def link_subscription(self, member_id: int, subscription: Mapping[str, Any]) -> StripeCustomerSubscription:
        """
        Mirror a Stripe subscription for a member.

        The given subscription only needs ``id`` and ``customer``; the
        canonical object is always re-read from Stripe. Relinking the same
        subscription updates its row in place.

        Raises:
            GatewayNotConfiguredError: Stripe is not configured
            UnlinkedCustomerError: The member has no customer row for the subscription's customer
        """
        self._require_stripe("link Stripe Subscription")
        self._get_member(member_id)

        customer_id = reference_id(subscription.get("customer"))
        customer = self.store.find_customer_for_member(member_id, customer_id) if customer_id else None
        if customer is None:
            raise UnlinkedCustomerError(member_id, customer_id)

        subscription = self.stripe.get_subscription(subscription["id"])

        payment_method = None
        method_id = payment_method_id(parse_payment_method_ref(subscription.get("default_payment_method")))
        if method_id:
            payment_method = self.stripe.get_card_payment_method(method_id)

        plan = subscription_plan(subscription)
        metadata = subscription.get("metadata") or {}

        row = self.store.upsert_subscription({
            "customer_id": reference_id(subscription["customer"]),
            "subscription_id": subscription["id"],
            "status": subscription["status"],
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            "cancellation_reason": metadata.get("cancellation_reason") or None,
            "current_period_end": from_timestamp(subscription_period_end(subscription)),
            "start_date": from_timestamp(subscription["start_date"]),
            "default_payment_card_last4": card_last4(payment_method),
            "plan_id": plan["id"],
            # nickname is non-nullable in the mirror, so fall back to the interval
            "plan_nickname": plan.get("nickname") or plan["interval"],
            "plan_interval": plan["interval"],
            "plan_amount": plan["amount"],
            "plan_currency": plan["currency"],
        })

        logger.info(
            f"Linked Stripe subscription: member_id={member_id}, subscription_id={row.subscription_id}, "
            f"status={row.status}, plan_id={row.plan_id}"
        )
        return row

    def update_subscription_cancellation(
        self,
        member_id: int,
        subscription_id: str,
        cancel_at_period_end: Optional[bool] = None
    ) -> StripeCustomerSubscription:
        """
        Set or clear cancel-at-period-end on a member's subscription.

        Stripe is updated first; the mirror is only written once Stripe accepted the change.

        Raises:
            GatewayNotConfiguredError: Stripe is not configured
            InvalidArgumentError: cancel_at_period_end is not a bool
            SubscriptionNotFoundError: The member has no such mirrored subscription
        """
        self._require_stripe("update Stripe Subscription")

        if not isinstance(cancel_at_period_end, bool):
            raise InvalidArgumentError(
                "cancel_at_period_end must be true or false",
                argument="cancel_at_period_end"
            )

        self._get_member(member_id)
        subscription = self.store.find_subscription_for_member(member_id, subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id, member_id)

        if cancel_at_period_end:
            self.stripe.cancel_subscription_at_period_end(subscription_id)
        else:
            self.stripe.continue_subscription_at_period_end(subscription_id)

        return self.store.edit_subscription(subscription_id, cancel_at_period_end=cancel_at_period_end)

    # -------------------------------------------------------------------------
    # Complimentary subscriptions
    # -------------------------------------------------------------------------

    def _complimentary_currency(self, active_subscriptions: List[StripeCustomerSubscription]) -> Optional[str]:
        # Stripe customers cannot mix currencies; switching an existing paying
        # member to another currency would block them from resubscribing later.
        if active_subscriptions:
            return active_subscriptions[0].plan_currency.lower()
        return self.plans.get_default_currency()

    def _find_usable_customer(self, member: Member) -> Tuple[Optional[Mapping[str, Any]], List[ItemOutcome]]:
        """
        First stored customer that still exists in Stripe.

        Fetch failures are recorded and logged, then the next customer is tried.
        """
        outcomes = []
        for customer in self.store.customers_for_member(member.id):
            try:
                fetched = self.stripe.get_customer(customer.customer_id)
            except Exception as e:
                logger.warning(
                    f"Ignoring error fetching Stripe customer {customer.customer_id} "
                    f"for member_id={member.id}: {e}",
                    exc_info=True
                )
                outcomes.append(ItemOutcome(customer.customer_id, error=e))
                continue

            outcomes.append(ItemOutcome(customer.customer_id, result=fetched))
            if fetched and not fetched.get("deleted"):
                return fetched, outcomes

        return None, outcomes

    def set_complimentary_subscription(self, member_id: int) -> ComplimentaryGrant:
        """
        Give a member complimentary access.

        Members without an active-like subscription get a new complimentary
        subscription; otherwise every active-like subscription is moved to
        the complimentary plan in its own currency.

        Returns:
            ComplimentaryGrant with the linked subscription rows and one outcome
            per stored customer probed before a usable one was found

        Raises:
            GatewayNotConfiguredError: Stripe is not configured
            ComplimentaryPlanNotFoundError: No complimentary plan for the resolved currency
            stripe.StripeError: First plan change failure, raised after all subscriptions were attempted
        """
        self._require_stripe("update Stripe Subscription")
        member = self._get_member(member_id)

        subscriptions = self.store.subscriptions_for_member(member_id)
        active_subscriptions = [s for s in subscriptions if s.is_active_like]

        currency = self._complimentary_currency(active_subscriptions)
        complimentary_plan = self.plans.get_complimentary_plan(currency)
        if complimentary_plan is None:
            raise ComplimentaryPlanNotFoundError(currency)

        stripe_customer, probes = self._find_usable_customer(member)

        if stripe_customer is None:
            stripe_customer = self.stripe.create_customer(email=member.email)
            self.upsert_customer(member_id, stripe_customer)

        if not active_subscriptions:
            subscription = self.stripe.create_subscription(stripe_customer["id"], complimentary_plan.id)
            return ComplimentaryGrant([self.link_subscription(member_id, subscription)], probes)

        # Only one active subscription is expected, but every one of them is moved
        linked = []
        errors = []
        for active in active_subscriptions:
            try:
                updated = self.stripe.change_subscription_plan(active.subscription_id, complimentary_plan.id)
                linked.append(self.link_subscription(member_id, updated))
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Failed to move subscription {active.subscription_id} to complimentary plan "
                    f"{complimentary_plan.id}: {e}"
                )
                errors.append(e)

        if errors:
            raise errors[0]

        logger.info(
            f"Complimentary plan set: member_id={member_id}, plan_id={complimentary_plan.id}, "
            f"subscriptions={len(linked)}"
        )
        return ComplimentaryGrant(linked, probes)

    def cancel_complimentary_subscription(self, member_id: int) -> List[ItemOutcome]:
        """
        Cancel every non-canceled subscription of a member, best effort.

        A failure on one subscription is logged and does not stop the others.

        Returns:
            One outcome per subscription attempted
        """
        self._require_stripe("cancel Complimentary Subscription")
        self._get_member(member_id)

        outcomes = []
        for subscription in self.store.subscriptions_for_member(member_id):
            if subscription.status == "canceled":
                continue

            subscription_id = subscription.subscription_id
            try:
                updated = self.stripe.cancel_subscription(subscription_id)
                row = self.link_subscription(member_id, updated)
                outcomes.append(ItemOutcome(subscription_id, result=row))
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"There was an error cancelling subscription {subscription_id} "
                    f"for member_id={member_id}: {e}",
                    exc_info=True
                )
                outcomes.append(ItemOutcome(subscription_id, error=e))

        failed = [outcome.item_id for outcome in outcomes if not outcome.ok]
        if failed:
            logger.warning(f"Cancel complimentary finished with failures: member_id={member_id}, failed={failed}")
        return outcomes
