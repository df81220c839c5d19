"""
Local mirror store for Stripe customers and subscriptions.

Record-level reads and writes over SQLAlchemy. Every write commits, so
progress made before a later failure stays persisted.
"""
import logging
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from members_api.core.exceptions import (
    CustomerAlreadyLinkedError,
    InvalidArgumentError,
    SubscriptionNotFoundError,
)
from members_api.db.models.member import Member
from members_api.db.models.stripe_customer import StripeCustomer
from members_api.db.models.stripe_subscription import StripeCustomerSubscription

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ("member_id", "name", "email")

SUBSCRIPTION_FIELDS = (
    "customer_id",
    "status",
    "cancel_at_period_end",
    "cancellation_reason",
    "current_period_end",
    "start_date",
    "default_payment_card_last4",
    "plan_id",
    "plan_nickname",
    "plan_interval",
    "plan_amount",
    "plan_currency",
)


class MirrorStore:
    """Persistence for Member, StripeCustomer and StripeCustomerSubscription rows."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def find_member(self, member_id: int) -> Optional[Member]:
        return self.db.query(Member).filter(Member.id == member_id).first()

    def find_member_by_customer_id(self, customer_id: str) -> Optional[Member]:
        customer = self.find_customer(customer_id)
        if customer is None:
            return None
        return customer.member

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    def find_customer(self, customer_id: str) -> Optional[StripeCustomer]:
        return self.db.query(StripeCustomer).filter(
            StripeCustomer.customer_id == customer_id
        ).first()

    def customers_for_member(self, member_id: int) -> List[StripeCustomer]:
        """Customers of a member in stored order."""
        return self.db.query(StripeCustomer).filter(
            StripeCustomer.member_id == member_id
        ).order_by(StripeCustomer.id).all()

    def find_customer_for_member(self, member_id: int, customer_id: str) -> Optional[StripeCustomer]:
        return self.db.query(StripeCustomer).filter(
            StripeCustomer.member_id == member_id,
            StripeCustomer.customer_id == customer_id
        ).first()

    def add_customer(self, data: Dict) -> StripeCustomer:
        """
        Insert-only write of a customer row.

        Raises:
            CustomerAlreadyLinkedError: If a row for data["customer_id"] already exists
        """
        customer_id = data["customer_id"]
        if self.find_customer(customer_id) is not None:
            raise CustomerAlreadyLinkedError(customer_id, data.get("member_id"))

        customer = StripeCustomer(
            customer_id=customer_id,
            **{field: data.get(field) for field in CUSTOMER_FIELDS}
        )
        self.db.add(customer)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent link of the same customer
            self.db.rollback()
            raise CustomerAlreadyLinkedError(customer_id, data.get("member_id"))
        self.db.refresh(customer)

        logger.info(f"Linked Stripe customer: customer_id={customer_id}, member_id={customer.member_id}")
        return customer

    def upsert_customer(self, data: Dict) -> StripeCustomer:
        """Insert or update a customer row keyed by customer_id."""
        customer_id = data["customer_id"]
        customer = self.find_customer(customer_id)
        if customer is None:
            customer = StripeCustomer(customer_id=customer_id)
            self.db.add(customer)

        for field in CUSTOMER_FIELDS:
            setattr(customer, field, data.get(field))

        self.db.commit()
        self.db.refresh(customer)
        return customer

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def find_subscription(self, subscription_id: str) -> Optional[StripeCustomerSubscription]:
        return self.db.query(StripeCustomerSubscription).filter(
            StripeCustomerSubscription.subscription_id == subscription_id
        ).first()

    def subscriptions_for_member(self, member_id: int) -> List[StripeCustomerSubscription]:
        """All subscriptions owned by a member through its customers, in stored order."""
        return self.db.query(StripeCustomerSubscription).join(
            StripeCustomer,
            StripeCustomer.customer_id == StripeCustomerSubscription.customer_id
        ).filter(
            StripeCustomer.member_id == member_id
        ).order_by(StripeCustomerSubscription.id).all()

    def subscriptions_for_customer(self, customer_id: str) -> List[StripeCustomerSubscription]:
        return self.db.query(StripeCustomerSubscription).filter(
            StripeCustomerSubscription.customer_id == customer_id
        ).order_by(StripeCustomerSubscription.id).all()

    def find_subscription_for_member(
        self,
        member_id: int,
        subscription_id: str
    ) -> Optional[StripeCustomerSubscription]:
        return self.db.query(StripeCustomerSubscription).join(
            StripeCustomer,
            StripeCustomer.customer_id == StripeCustomerSubscription.customer_id
        ).filter(
            StripeCustomer.member_id == member_id,
            StripeCustomerSubscription.subscription_id == subscription_id
        ).first()

    def upsert_subscription(self, data: Dict) -> StripeCustomerSubscription:
        """Insert or overwrite a subscription row keyed by subscription_id."""
        subscription_id = data["subscription_id"]
        subscription = self.find_subscription(subscription_id)
        if subscription is None:
            subscription = StripeCustomerSubscription(subscription_id=subscription_id)
            self.db.add(subscription)

        for field in SUBSCRIPTION_FIELDS:
            setattr(subscription, field, data.get(field))

        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def edit_subscription(self, subscription_id: str, **fields) -> StripeCustomerSubscription:
        """
        Update only the given fields of an existing subscription row.

        Raises:
            InvalidArgumentError: If a field is not a mirrored subscription field
            SubscriptionNotFoundError: If no row exists for subscription_id
        """
        unknown = sorted(set(fields) - set(SUBSCRIPTION_FIELDS))
        if unknown:
            raise InvalidArgumentError(
                f"Unknown subscription field(s): {', '.join(unknown)}",
                argument=unknown[0]
            )

        subscription = self.find_subscription(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)

        for field, value in fields.items():
            setattr(subscription, field, value)

        self.db.commit()
        self.db.refresh(subscription)
        return subscription
