"""
Plan configuration for subscription tiers.

This module is the single source of truth for purchasable plans: which tier a
plan grants, for how long, and at what price. It lives in core/ so both the
service and API layers can import from it without circular dependencies.

Plan identifiers are looked up, never parsed: adding a plan means adding a
row here.
"""

from dataclasses import dataclass
from typing import Optional

from infrastructure.database.models.profile import SubscriptionTier

CURRENCY = "XOF"

MONTHLY_DAYS = 30
YEARLY_DAYS = 365


@dataclass(frozen=True)
class Plan:
    """A purchasable plan."""

    id: str
    name: str
    tier: SubscriptionTier
    duration_days: int
    price: int
    features: tuple[str, ...] = ()


_STANDARD_FEATURES = (
    "Unlimited premium articles",
    "Full analyses and reports",
    "Daily newsletter",
    "Custom alerts",
    "Five-year archive",
)

_PREMIUM_FEATURES = (
    "Everything in Standard",
    "Exclusive PDF reports",
    "Monthly webinars",
    "Real-time financial data",
    "Priority support",
)

PLANS: dict[str, Plan] = {
    plan.id: plan
    for plan in (
        Plan("standard-monthly", "Standard", SubscriptionTier.STANDARD, MONTHLY_DAYS, 5000, _STANDARD_FEATURES),
        Plan("standard-yearly", "Standard (annual)", SubscriptionTier.STANDARD, YEARLY_DAYS, 50000, _STANDARD_FEATURES),
        Plan("premium-monthly", "Premium", SubscriptionTier.PREMIUM, MONTHLY_DAYS, 10000, _PREMIUM_FEATURES),
        Plan("premium-yearly", "Premium (annual)", SubscriptionTier.PREMIUM, YEARLY_DAYS, 100000, _PREMIUM_FEATURES),
    )
}

# Identifiers written by older purchase forms, before billing periods existed
LEGACY_PLAN_ALIASES = {
    "standard": "standard-monthly",
    "premium": "premium-monthly",
}


def free_plan_features(allowance: int, window_days: int) -> tuple[str, ...]:
    """Feature list for the free tier, worded from the configured meter."""
    return (
        "Free articles",
        f"{allowance} premium articles every {window_days} days",
        "Weekly newsletter",
    )


def get_plan(plan_id: str) -> Optional[Plan]:
    """Look up a plan by identifier, honouring legacy aliases."""
    plan_id = LEGACY_PLAN_ALIASES.get(plan_id, plan_id)
    return PLANS.get(plan_id)
