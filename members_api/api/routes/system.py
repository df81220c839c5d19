from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from members_api.core.auth_dependency import get_db, get_stripe_api_service, get_stripe_plans_service
from members_api.services.stripe_plans import StripePlansService
from members_api.services.stripe_service import StripeAPIService

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health")
def system_health(
    db: Session = Depends(get_db),
    stripe_api_service: StripeAPIService = Depends(get_stripe_api_service),
    stripe_plans_service: StripePlansService = Depends(get_stripe_plans_service),
):
    db_ok = True
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "database": "connected" if db_ok else "error",
        "stripe": "configured" if stripe_api_service.configured else "not_configured",
        "plans": len(stripe_plans_service.get_plans()),
        "api_version": "1.0.0",
        "service": "Members API"
    }
