"""
Admin member endpoints.

Member management plus the Stripe reconciliation operations. All routes
require an admin bearer token.
"""
import logging
from typing import Any, Dict, List, Optional
import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from members_api.core.auth_dependency import (
    get_current_admin,
    get_db,
    get_reconciliation_service,
    get_stripe_api_service,
)
from members_api.core.exceptions import MembersError, MemberNotFoundError
from members_api.schemas.member import (
    CancelComplimentaryResponse,
    ComplimentaryGrantResponse,
    CustomerProbeOut,
    LinkCustomerRequest,
    LinkSubscriptionRequest,
    MemberCreate,
    MemberListResponse,
    MemberOut,
    MemberUpdate,
    StripeCustomerOut,
    SubscriptionOut,
    SubscriptionOutcomeOut,
    UpdateSubscriptionRequest,
)
from members_api.services import member_service
from members_api.services.reconciliation_service import ReconciliationService
from members_api.services.stripe_service import StripeAPIService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["Members"], dependencies=[Depends(get_current_admin)])


def _http_error(e: Exception) -> HTTPException:
    """Map service and Stripe errors to HTTP errors."""
    if isinstance(e, MembersError):
        return HTTPException(status_code=e.status_code, detail=e.to_dict())
    if isinstance(e, stripe.StripeError):
        logger.error(f"Stripe error in members API: {e}")
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "STRIPE_ERROR", "message": str(e.user_message or e), "details": {}}
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _label_payload(labels) -> Optional[List[Any]]:
    if labels is None:
        return None
    return [label if isinstance(label, str) else label.model_dump() for label in labels]


@router.get("", response_model=MemberListResponse)
def list_members(
    page: int = Query(1, ge=1),
    limit: int = Query(member_service.DEFAULT_PAGE_LIMIT, ge=1, le=member_service.MAX_PAGE_LIMIT),
    db: Session = Depends(get_db)
):
    result = member_service.list_members(db, page=page, limit=limit)
    return MemberListResponse(
        members=[MemberOut.model_validate(member) for member in result["members"]],
        meta=result["meta"],
    )


@router.post("", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def create_member(payload: MemberCreate, db: Session = Depends(get_db)):
    if member_service.get_member(db, email=payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Member already exists")

    data = payload.model_dump(exclude={"labels"})
    data["labels"] = _label_payload(payload.labels)
    return member_service.create_member(db, data)


@router.get("/{member_id}", response_model=MemberOut)
def get_member(member_id: int, db: Session = Depends(get_db)):
    member = member_service.get_member(db, member_id=member_id)
    if member is None:
        raise _http_error(MemberNotFoundError(member_id))
    return member


@router.put("/{member_id}", response_model=MemberOut)
def update_member(
    member_id: int,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    stripe_api_service: StripeAPIService = Depends(get_stripe_api_service)
):
    data: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    if "labels" in data:
        data["labels"] = _label_payload(payload.labels)
    try:
        member, _changed = member_service.update_member(db, stripe_api_service, member_id, data)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)
    return member


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def destroy_member(
    member_id: int,
    cancel_subscriptions: bool = Query(False, description="Cancel Stripe subscriptions before deleting"),
    db: Session = Depends(get_db),
    stripe_api_service: StripeAPIService = Depends(get_stripe_api_service)
):
    try:
        member_service.destroy_member(db, stripe_api_service, member_id, cancel_stripe_subscriptions=cancel_subscriptions)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)


@router.post("/{member_id}/stripe/customers", response_model=StripeCustomerOut)
def link_stripe_customer(
    member_id: int,
    payload: LinkCustomerRequest,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    try:
        customer = service.link_customer(member_id, payload.customer_id)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "STRIPE_CUSTOMER_NOT_FOUND", "message": "Stripe customer not found",
                    "details": {"customer_id": payload.customer_id}}
        )
    return customer


@router.post("/{member_id}/stripe/subscriptions", response_model=SubscriptionOut)
def link_stripe_subscription(
    member_id: int,
    payload: LinkSubscriptionRequest,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    try:
        return service.link_subscription(member_id, {"id": payload.subscription_id, "customer": payload.customer_id})
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)


@router.put("/{member_id}/subscriptions/{subscription_id}", response_model=SubscriptionOut)
def update_subscription(
    member_id: int,
    subscription_id: str,
    payload: UpdateSubscriptionRequest,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    try:
        return service.update_subscription_cancellation(member_id, subscription_id, payload.cancel_at_period_end)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)


@router.post("/{member_id}/comped", response_model=ComplimentaryGrantResponse)
def set_complimentary(
    member_id: int,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    try:
        grant = service.set_complimentary_subscription(member_id)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)

    return ComplimentaryGrantResponse(
        subscriptions=[SubscriptionOut.model_validate(row) for row in grant.subscriptions],
        customer_probes=[
            CustomerProbeOut(
                customer_id=probe.item_id,
                success=probe.ok,
                usable=bool(probe.ok and probe.result and not probe.result.get("deleted")),
                error=None if probe.ok else str(probe.error),
            )
            for probe in grant.customer_probes
        ]
    )


@router.delete("/{member_id}/comped", response_model=CancelComplimentaryResponse)
def cancel_complimentary(
    member_id: int,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    try:
        outcomes = service.cancel_complimentary_subscription(member_id)
    except (MembersError, stripe.StripeError) as e:
        raise _http_error(e)

    return CancelComplimentaryResponse(
        success=True,
        subscriptions=[
            SubscriptionOutcomeOut(
                subscription_id=outcome.item_id,
                success=outcome.ok,
                status=outcome.result.status if outcome.ok else None,
                error=None if outcome.ok else str(outcome.error),
            )
            for outcome in outcomes
        ]
    )
