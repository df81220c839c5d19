"""
Plan catalog for member subscriptions.

Holds the configured Stripe plans and resolves the complimentary plan
for a given currency.
"""
import json
import logging
from typing import List, Optional, Iterable, Union

from members_api.schemas.plan import Plan

logger = logging.getLogger(__name__)

DEFAULT_COMPLIMENTARY_NICKNAME = "Complimentary"


class StripePlansService:
    """
    Read-only catalog of billing plans.

    One complimentary plan may exist per currency; it is recognised by its
    nickname.
    """

    def __init__(
        self,
        plans: Iterable[Union[Plan, dict]],
        complimentary_nickname: str = DEFAULT_COMPLIMENTARY_NICKNAME
    ):
        self._plans: List[Plan] = [
            plan if isinstance(plan, Plan) else Plan(**plan)
            for plan in plans
        ]
        self._complimentary_nickname = complimentary_nickname.lower()

    @classmethod
    def from_json(
        cls,
        raw: Optional[str],
        complimentary_nickname: str = DEFAULT_COMPLIMENTARY_NICKNAME
    ) -> "StripePlansService":
        """
        Build the catalog from a JSON list of plans.

        Raises:
            ValueError: If the payload is not a JSON list
        """
        if not raw:
            logger.warning("STRIPE_PLANS not configured - plan catalog is empty")
            return cls([], complimentary_nickname=complimentary_nickname)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"STRIPE_PLANS is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise ValueError("STRIPE_PLANS must be a JSON list of plans")

        return cls(data, complimentary_nickname=complimentary_nickname)

    def get_plans(self) -> List[Plan]:
        """All configured plans, in configuration order."""
        return list(self._plans)

    def is_complimentary(self, plan: Plan) -> bool:
        return (plan.nickname or "").lower() == self._complimentary_nickname

    def get_default_currency(self) -> Optional[str]:
        """Currency of the first monthly plan, lower-cased."""
        for plan in self._plans:
            if plan.interval == "month":
                return plan.currency.lower()
        return None

    def get_complimentary_plan(self, currency: str) -> Optional[Plan]:
        """Complimentary plan for a currency, or None when the catalog has none."""
        if not currency:
            return None
        currency = currency.lower()
        for plan in self._plans:
            if self.is_complimentary(plan) and plan.currency.lower() == currency:
                return plan
        return None
