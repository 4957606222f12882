"""Plan catalogue — internal plan keys mapped to PayPal billing plans."""

from dataclasses import dataclass

from app.config import settings


@dataclass(frozen=True)
class PlanDefinition:
    """A subscribable plan."""

    id: str  # internal key stored on Subscription.plan_id
    display_name: str
    description: str
    price_cents: int
    currency: str
    interval: str  # "month" or "year"
    paypal_plan_id: str | None  # None until configured in the environment


PLANS: dict[str, PlanDefinition] = {
    "basic-monthly": PlanDefinition(
        id="basic-monthly",
        display_name="Basic (Monthly)",
        description="Transcripts, course tracking and test scores for every student.",
        price_cents=999,
        currency="USD",
        interval="month",
        paypal_plan_id=settings.paypal_basic_monthly_plan_id or None,
    ),
    "basic-annual": PlanDefinition(
        id="basic-annual",
        display_name="Basic (Annual)",
        description="Everything in Basic, billed yearly.",
        price_cents=9900,
        currency="USD",
        interval="year",
        paypal_plan_id=settings.paypal_basic_annual_plan_id or None,
    ),
}


def get_plan(plan_id: str) -> PlanDefinition | None:
    """Look up a plan by internal key. Returns None if unknown."""
    return PLANS.get(plan_id)


def get_plan_by_paypal_id(paypal_plan_id: str) -> str | None:
    """Reverse lookup: PayPal plan ID -> internal plan key."""
    for plan in PLANS.values():
        if plan.paypal_plan_id and plan.paypal_plan_id == paypal_plan_id:
            return plan.id
    return None
