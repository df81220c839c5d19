"""
Pydantic schema for configured billing plans.
"""
from typing import Optional
from pydantic import BaseModel, Field


class Plan(BaseModel):
    """A Stripe plan available to members."""
    id: str = Field(..., description="Stripe plan/price ID")
    nickname: Optional[str] = Field(None, description="Display name, e.g. 'Monthly' or 'Complimentary'")
    interval: str = Field(..., description="Billing interval: 'month' or 'year'")
    currency: str = Field(..., description="ISO currency code", min_length=3, max_length=3)
    amount: int = Field(0, description="Amount in the smallest currency unit", ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "price_1Complimentary",
                "nickname": "Complimentary",
                "interval": "year",
                "currency": "usd",
                "amount": 0
            }
        }
