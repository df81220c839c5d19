from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from members_api.db.base import Base

# Statuses that hold a subscription slot for the member
ACTIVE_LIKE_STATUSES = ("active", "trialing", "unpaid", "past_due")


class StripeCustomerSubscription(Base):
    """
    Local mirror of a Stripe subscription.

    subscription_id is the upsert key: relinking a known subscription
    overwrites the row in place.
    """
    __tablename__ = "members_stripe_customers_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(
        String(255),
        ForeignKey("members_stripe_customers.customer_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id = Column(String(255), unique=True, nullable=False, index=True)  # sub_xxx
    status = Column(String(50), nullable=False)  # active | trialing | unpaid | past_due | canceled | ...
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    cancellation_reason = Column(String(500), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    default_payment_card_last4 = Column(String(4), nullable=True)

    plan_id = Column(String(255), nullable=False)
    plan_nickname = Column(String(50), nullable=False)  # falls back to plan_interval
    plan_interval = Column(String(50), nullable=False)
    plan_amount = Column(Integer, nullable=False)
    plan_currency = Column(String(3), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    customer = relationship("StripeCustomer", back_populates="subscriptions")

    @property
    def is_active_like(self) -> bool:
        return self.status in ACTIVE_LIKE_STATUSES
