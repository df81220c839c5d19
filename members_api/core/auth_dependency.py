from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from members_api.core import config
from members_api.core.security import decode_admin_token
from members_api.db.session import SessionLocal
from members_api.services.reconciliation_service import ReconciliationService
from members_api.services.stripe_plans import StripePlansService
from members_api.services.stripe_service import StripeAPIService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_admin(token: str = Depends(oauth2_scheme)) -> str:
    """Get the admin subject from the bearer token."""
    subject = decode_admin_token(token)
    if subject is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return subject


@lru_cache()
def get_stripe_api_service() -> StripeAPIService:
    """Stripe client built from configuration (unconfigured without a secret key)."""
    return StripeAPIService(
        api_key=config.STRIPE_SECRET_KEY,
        api_version=config.STRIPE_API_VERSION,
        max_network_retries=config.STRIPE_MAX_NETWORK_RETRIES,
    )


@lru_cache()
def get_stripe_plans_service() -> StripePlansService:
    """Plan catalog parsed from the STRIPE_PLANS setting."""
    return StripePlansService.from_json(
        config.STRIPE_PLANS,
        complimentary_nickname=config.COMPLIMENTARY_PLAN_NICKNAME,
    )


def get_reconciliation_service(
    db: Session = Depends(get_db),
    stripe_api_service: StripeAPIService = Depends(get_stripe_api_service),
    stripe_plans_service: StripePlansService = Depends(get_stripe_plans_service),
) -> ReconciliationService:
    """Reconciliation engine bound to the request's database session."""
    return ReconciliationService(
        db=db,
        stripe_api_service=stripe_api_service,
        stripe_plans_service=stripe_plans_service,
    )
