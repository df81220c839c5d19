"""
Pydantic schemas for member and subscription endpoints.
"""
from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, Field


class LabelIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=191)


class LabelOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    """Request schema for creating a member."""
    email: str = Field(..., description="Member email address", max_length=191)
    name: Optional[str] = Field(None, max_length=191)
    note: Optional[str] = None
    subscribed: Optional[bool] = True
    geolocation: Optional[str] = None
    created_at: Optional[datetime] = None
    labels: List[Union[str, LabelIn]] = Field(default_factory=list, description="Label names or {name} objects")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "reader@example.com",
                "name": "Jamie Reader",
                "labels": ["VIP", {"name": "Newsletter"}]
            }
        }


class MemberUpdate(BaseModel):
    """Request schema for updating a member; only provided fields are applied."""
    email: Optional[str] = Field(None, max_length=191)
    name: Optional[str] = Field(None, max_length=191)
    note: Optional[str] = None
    subscribed: Optional[bool] = None
    geolocation: Optional[str] = None
    labels: Optional[List[Union[str, LabelIn]]] = None


class StripeCustomerOut(BaseModel):
    customer_id: str
    name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True


class SubscriptionOut(BaseModel):
    subscription_id: str
    customer_id: str
    status: str
    cancel_at_period_end: bool
    cancellation_reason: Optional[str] = None
    current_period_end: datetime
    start_date: datetime
    default_payment_card_last4: Optional[str] = None
    plan_id: str
    plan_nickname: str
    plan_interval: str
    plan_amount: int
    plan_currency: str

    class Config:
        from_attributes = True


class MemberOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    note: Optional[str] = None
    subscribed: bool
    geolocation: Optional[str] = None
    created_at: Optional[datetime] = None
    labels: List[LabelOut] = Field(default_factory=list)
    stripe_customers: List[StripeCustomerOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class PaginationOut(BaseModel):
    page: int
    limit: int
    pages: int
    total: int
    next: Optional[int] = None
    prev: Optional[int] = None


class MetaOut(BaseModel):
    pagination: PaginationOut


class MemberListResponse(BaseModel):
    members: List[MemberOut]
    meta: MetaOut


class LinkCustomerRequest(BaseModel):
    """Request schema for linking an existing Stripe customer."""
    customer_id: str = Field(..., description="Stripe customer ID", pattern="^cus_")


class LinkSubscriptionRequest(BaseModel):
    """Request schema for linking a Stripe subscription of an already linked customer."""
    subscription_id: str = Field(..., description="Stripe subscription ID", pattern="^sub_")
    customer_id: str = Field(..., description="Stripe customer ID", pattern="^cus_")


class UpdateSubscriptionRequest(BaseModel):
    """Request schema for toggling cancel-at-period-end."""
    cancel_at_period_end: Optional[bool] = Field(None, description="Required: true to cancel at period end, false to continue")


class SubscriptionOutcomeOut(BaseModel):
    subscription_id: str
    success: bool
    status: Optional[str] = None
    error: Optional[str] = None


class CancelComplimentaryResponse(BaseModel):
    success: bool = True
    subscriptions: List[SubscriptionOutcomeOut]


class CustomerProbeOut(BaseModel):
    customer_id: str
    success: bool
    usable: bool = False
    error: Optional[str] = None


class ComplimentaryGrantResponse(BaseModel):
    """Response for a complimentary grant: linked subscriptions and the customer probes made first."""
    subscriptions: List[SubscriptionOut]
    customer_probes: List[CustomerProbeOut] = Field(default_factory=list)
