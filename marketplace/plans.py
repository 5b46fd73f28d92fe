"""Static catalog of purchasable "featured" promotion plans."""
from dataclasses import dataclass

from .exceptions import InvalidPlan

CURRENCY_LABEL = "PKR"


@dataclass(frozen=True)
class FeaturedPlan:
    id: str
    name: str
    duration_days: int
    price: int  # minor currency units (paisa), as charged through Stripe
    popular: bool = False

    @property
    def major_price(self):
        return self.price // 100


FEATURED_PLANS = [
    FeaturedPlan(id="1_week", name="1 Week Feature", duration_days=7, price=99900),
    FeaturedPlan(id="3_weeks", name="3 Weeks Feature", duration_days=21, price=249900, popular=True),
]

_PLANS_BY_ID = {plan.id: plan for plan in FEATURED_PLANS}


def find_plan(plan_id):
    return _PLANS_BY_ID.get(plan_id)


def get_plan(plan_id):
    plan = find_plan(plan_id)
    if plan is None:
        raise InvalidPlan(f"Invalid plan selected: {plan_id!r}")
    return plan


def price_display(plan_id):
    plan = find_plan(plan_id)
    if plan is None:
        return "N/A"
    return f"{CURRENCY_LABEL} {plan.major_price:,}"


def duration_display(plan_id):
    plan = find_plan(plan_id)
    if plan is None:
        return "N/A"
    return f"{plan.duration_days} days"
