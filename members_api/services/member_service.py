"""
Member service.

Create, read, update, list and delete members. Updates propagate email
changes to every linked Stripe customer; deletes can cancel the member's
Stripe subscriptions first.
"""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from members_api.core.exceptions import GatewayNotConfiguredError, MemberEmailTakenError, MemberNotFoundError
from members_api.db.models.label import Label
from members_api.db.models.member import Member
from members_api.services.mirror_store import MirrorStore
from members_api.services.stripe_service import StripeAPIService

logger = logging.getLogger(__name__)

CREATE_FIELDS = ("email", "name", "note", "subscribed", "geolocation", "created_at")
UPDATE_FIELDS = ("email", "name", "note", "subscribed", "labels", "geolocation")
REQUIRED_FIELDS = ("email", "subscribed")

DEFAULT_PAGE_LIMIT = 15
MAX_PAGE_LIMIT = 100


def normalize_labels(labels: Optional[Iterable[Union[str, Dict[str, Any]]]]) -> List[Dict[str, Any]]:
    """Turn plain label names into {"name": ...} objects."""
    if not labels:
        return []
    return [{"name": label} if isinstance(label, str) else dict(label) for label in labels]


def _resolve_labels(db: Session, labels: Iterable[Union[str, Dict[str, Any]]]) -> List[Label]:
    """Existing labels by name, creating the missing ones."""
    resolved = []
    seen = set()
    for label in normalize_labels(labels):
        name = (label.get("name") or "").strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())

        row = db.query(Label).filter(Label.name == name).first()
        if row is None:
            row = Label(name=name)
            db.add(row)
        resolved.append(row)
    return resolved


def _snapshot(member: Member) -> Dict[str, Any]:
    return {
        "email": member.email,
        "name": member.name,
        "note": member.note,
        "subscribed": member.subscribed,
        "geolocation": member.geolocation,
        "labels": sorted(label.name for label in member.labels),
    }


def get_member(
    db: Session,
    member_id: Optional[int] = None,
    email: Optional[str] = None,
    customer_id: Optional[str] = None
) -> Optional[Member]:
    """
    Find a member by ID, email, or linked Stripe customer ID.

    The customer ID takes precedence when given.
    """
    if customer_id:
        return MirrorStore(db).find_member_by_customer_id(customer_id)
    if member_id is not None:
        return db.query(Member).filter(Member.id == member_id).first()
    if email:
        return db.query(Member).filter(Member.email == email.strip().lower()).first()
    return None


def create_member(db: Session, data: Dict[str, Any]) -> Member:
    """Create a member from the whitelisted fields and its labels."""
    values = {field: data[field] for field in CREATE_FIELDS if data.get(field) is not None}
    values["email"] = values["email"].strip().lower()

    member = Member(**values)
    member.labels = _resolve_labels(db, data.get("labels") or [])
    db.add(member)
    db.commit()
    db.refresh(member)

    logger.info(f"Member created: member_id={member.id}")
    return member


def update_member(
    db: Session,
    stripe_api_service: Optional[StripeAPIService],
    member_id: int,
    data: Dict[str, Any]
) -> Tuple[Member, Set[str]]:
    """
    Update a member and propagate an email change to Stripe.

    Only keys present in ``data`` are applied. The changed fields are
    computed from a before/after snapshot of the member.

    Returns:
        Tuple of (member, changed field names)

    Raises:
        MemberNotFoundError: If the member does not exist
        MemberEmailTakenError: If another member already has the new email
    """
    member = get_member(db, member_id=member_id)
    if member is None:
        raise MemberNotFoundError(member_id)

    email = data.get("email")
    if email is not None:
        email = email.strip().lower()
        existing = get_member(db, email=email)
        if existing is not None and existing.id != member.id:
            raise MemberEmailTakenError(email, existing.id)

    before = _snapshot(member)

    for field in UPDATE_FIELDS:
        if field not in data:
            continue
        # email and subscribed are NOT NULL; an explicit null leaves them as they are
        if field in REQUIRED_FIELDS and data[field] is None:
            continue
        if field == "labels":
            member.labels = _resolve_labels(db, data["labels"] or [])
        elif field == "email":
            member.email = email
        else:
            setattr(member, field, data[field])

    after = _snapshot(member)
    changed = {field for field in after if before[field] != after[field]}

    try:
        db.commit()
    except IntegrityError:
        # Lost a race against another member taking the same email
        db.rollback()
        raise MemberEmailTakenError(email or member.email, None)
    db.refresh(member)

    if "email" in changed:
        _propagate_email(stripe_api_service, MirrorStore(db), member)

    logger.info(f"Member updated: member_id={member.id}, changed={sorted(changed)}")
    return member, changed


def _propagate_email(stripe_api_service: Optional[StripeAPIService], store: MirrorStore, member: Member) -> None:
    customers = store.customers_for_member(member.id)
    if not customers:
        return
    if stripe_api_service is None or not stripe_api_service.configured:
        logger.warning(
            f"Email of member_id={member.id} changed but Stripe is not configured - "
            f"{len(customers)} Stripe customer(s) keep the old email"
        )
        return

    for customer in customers:
        stripe_api_service.update_customer_email(customer.customer_id, member.email)


def list_members(db: Session, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> Dict[str, Any]:
    """
    A page of members ordered by creation, newest first.

    Returns:
        Dictionary with "members" and "meta" pagination details
    """
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_LIMIT))

    total = db.query(Member).count()
    members = db.query(Member).order_by(
        Member.created_at.desc(), Member.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    pages = max(1, math.ceil(total / limit))
    return {
        "members": members,
        "meta": {
            "pagination": {
                "page": page,
                "limit": limit,
                "pages": pages,
                "total": total,
                "next": page + 1 if page < pages else None,
                "prev": page - 1 if page > 1 else None,
            }
        }
    }


def destroy_member(
    db: Session,
    stripe_api_service: Optional[StripeAPIService],
    member_id: int,
    cancel_stripe_subscriptions: bool = False
) -> None:
    """
    Delete a member with its customers and subscriptions.

    With ``cancel_stripe_subscriptions`` every non-canceled subscription is
    canceled in Stripe first and its mirrored status updated. A Stripe
    failure aborts the delete.

    Raises:
        MemberNotFoundError: If the member does not exist
        GatewayNotConfiguredError: If cancellation was requested without Stripe
    """
    member = get_member(db, member_id=member_id)
    if member is None:
        raise MemberNotFoundError(member_id)

    if cancel_stripe_subscriptions:
        if stripe_api_service is None or not stripe_api_service.configured:
            raise GatewayNotConfiguredError("cancel Stripe Subscriptions")

        store = MirrorStore(db)
        for subscription in store.subscriptions_for_member(member_id):
            if subscription.status == "canceled":
                continue
            updated = stripe_api_service.cancel_subscription(subscription.subscription_id)
            store.edit_subscription(subscription.subscription_id, status=updated["status"])

    db.delete(member)
    db.commit()
    logger.info(f"Member deleted: member_id={member_id}, cancel_stripe_subscriptions={cancel_stripe_subscriptions}")
