from dataclasses import dataclass, field
from typing import Dict, List

from models.payment import Plan


@dataclass(frozen=True)
class PlanDetails:
    key: Plan
    name: str
    price: int  # minor units (paise)
    features: List[str] = field(default_factory=list)


PLANS: Dict[Plan, PlanDetails] = {
    Plan.BASIC: PlanDetails(
        key=Plan.BASIC,
        name="Basic Plan",
        price=999,
        features=["Dashboard Access", "Basic Analytics", "Email Support"],
    ),
    Plan.PREMIUM: PlanDetails(
        key=Plan.PREMIUM,
        name="Premium Plan",
        price=2999,
        features=["All Basic Features", "Advanced Analytics", "Priority Support", "API Access"],
    ),
    Plan.ENTERPRISE: PlanDetails(
        key=Plan.ENTERPRISE,
        name="Enterprise Plan",
        price=9999,
        features=["All Premium Features", "Custom Integrations", "Dedicated Support", "White Label"],
    ),
}


def get_plan(plan_key: str) -> PlanDetails | None:
    """Look up a plan by its key; returns None for anything outside the catalog."""
    try:
        return PLANS[Plan(plan_key)]
    except ValueError:
        return None
