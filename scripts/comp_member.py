"""
Script to give a member complimentary access, or take it away.

Run: python -m scripts.comp_member reader@example.com
     python -m scripts.comp_member reader@example.com --cancel
"""
import argparse
import logging
import sys

from members_api.core import config
from members_api.db.session import SessionLocal
from members_api.services import member_service
from members_api.services.reconciliation_service import ReconciliationService
from members_api.services.stripe_plans import StripePlansService
from members_api.services.stripe_service import StripeAPIService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def comp_member(email: str, cancel: bool = False) -> bool:
    """Grant (or cancel) complimentary access for the member with this email."""
    db = SessionLocal()
    try:
        member = member_service.get_member(db, email=email)
        if member is None:
            logger.error(f"Member {email} not found")
            return False

        service = ReconciliationService(
            db=db,
            stripe_api_service=StripeAPIService(
                api_key=config.STRIPE_SECRET_KEY,
                api_version=config.STRIPE_API_VERSION,
                max_network_retries=config.STRIPE_MAX_NETWORK_RETRIES,
            ),
            stripe_plans_service=StripePlansService.from_json(
                config.STRIPE_PLANS,
                complimentary_nickname=config.COMPLIMENTARY_PLAN_NICKNAME,
            ),
        )

        if cancel:
            outcomes = service.cancel_complimentary_subscription(member.id)
            failed = [outcome.item_id for outcome in outcomes if not outcome.ok]
            logger.info(f"Canceled {len(outcomes) - len(failed)} subscription(s) for {email}")
            if failed:
                logger.warning(f"Could not cancel: {', '.join(failed)}")
            return not failed

        grant = service.set_complimentary_subscription(member.id)
        for probe in grant.customer_probes:
            if not probe.ok:
                logger.warning(f"Skipped Stripe customer {probe.item_id}: {probe.error}")
        for subscription in grant.subscriptions:
            logger.info(
                f"{email}: subscription {subscription.subscription_id} on plan "
                f"{subscription.plan_id} ({subscription.status})"
            )
        return True

    except Exception as e:
        db.rollback()
        logger.error(f"Error updating complimentary access for {email}: {e}", exc_info=True)
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Grant or cancel complimentary member access")
    parser.add_argument("email", help="Member email address")
    parser.add_argument("--cancel", action="store_true", help="Cancel all of the member's subscriptions")
    args = parser.parse_args(argv)

    success = comp_member(args.email, cancel=args.cancel)
    if success:
        print(f"\n[SUCCESS] Complimentary access {'cancelled' if args.cancel else 'granted'} for {args.email}")
        return 0

    print(f"\n[ERROR] Failed to update complimentary access for {args.email}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
