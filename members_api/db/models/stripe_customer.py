from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from members_api.db.base import Base


class StripeCustomer(Base):
    """
    Local mirror of a Stripe customer linked to exactly one member.

    A member may own several customers (e.g. after data migrations);
    only customer_id is unique.
    """
    __tablename__ = "members_stripe_customers"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String(255), unique=True, nullable=False, index=True)  # cus_xxx
    name = Column(String(191), nullable=True)
    email = Column(String(191), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    member = relationship("Member", back_populates="stripe_customers")
    subscriptions = relationship(
        "StripeCustomerSubscription",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="StripeCustomerSubscription.id",
    )
