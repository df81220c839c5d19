"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from members_api.db.models.member import Member, members_labels
from members_api.db.models.label import Label
from members_api.db.models.stripe_customer import StripeCustomer
from members_api.db.models.stripe_subscription import StripeCustomerSubscription, ACTIVE_LIKE_STATUSES

# Explicitly export all models for clarity
__all__ = [
    "Member",
    "members_labels",
    "Label",
    "StripeCustomer",
    "StripeCustomerSubscription",
    "ACTIVE_LIKE_STATUSES",
]
