"""
Subscription Pricing

Maps a plan and billing cycle to the charged amount and granted tokens.
Every billing cycle is priced here and nowhere else.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Tuple, Union

from .models import BillingCycle, PlanQuote, SubscriptionPlan
from .protocols import InvalidBillingCycleError

# cycle -> (price multiplier, token multiplier)
# Yearly bills ten months and grants twelve.
CYCLE_MULTIPLIERS: Dict[BillingCycle, Tuple[Decimal, int]] = {
    BillingCycle.MONTHLY: (Decimal("1"), 1),
    BillingCycle.YEARLY: (Decimal("10"), 12),
}

# Amounts are charged and recorded in whole cents
AMOUNT_QUANTUM = Decimal("0.01")


def settle_amount(value: Decimal) -> Decimal:
    """Round a major-unit amount to cents, half up"""
    return Decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def parse_billing_cycle(value: Union[str, BillingCycle]) -> BillingCycle:
    """Normalize a billing cycle value; raises InvalidBillingCycleError"""
    if isinstance(value, BillingCycle):
        return value
    if not isinstance(value, str):
        raise InvalidBillingCycleError(f"Invalid billing cycle: {value!r}")
    try:
        return BillingCycle(value.strip().lower())
    except ValueError:
        raise InvalidBillingCycleError(f"Invalid billing cycle: {value!r}") from None


def compute_price(plan: SubscriptionPlan, cycle: Union[str, BillingCycle]) -> PlanQuote:
    """
    Price a plan for a billing cycle.

    Args:
        plan: Catalog plan (monthly base price and tokens)
        cycle: Billing cycle or its string value

    Returns:
        PlanQuote with the amount to charge, settled to cents, and tokens to grant

    Raises:
        InvalidBillingCycleError: unrecognized cycle
    """
    billing_cycle = parse_billing_cycle(cycle)
    if billing_cycle not in CYCLE_MULTIPLIERS:
        raise InvalidBillingCycleError(f"No pricing for billing cycle: {billing_cycle.value}")

    price_multiplier, token_multiplier = CYCLE_MULTIPLIERS[billing_cycle]
    return PlanQuote(
        plan_id=plan.plan_id,
        plan_name=plan.name,
        billing_cycle=billing_cycle,
        amount=settle_amount(plan.price * price_multiplier),
        tokens=plan.tokens * token_multiplier,
    )


__all__ = ["CYCLE_MULTIPLIERS", "AMOUNT_QUANTUM", "settle_amount", "parse_billing_cycle", "compute_price"]
