"""
ROI accrual calculator.

Deterministic rate selection inside a package's band and cap-clamped
accrual planning. No database access.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from compensation.models.enums import RatePolicy
from compensation.utils.money import ZERO, percent_of


def select_rate(
    rate_min: Decimal,
    rate_max: Decimal,
    policy: RatePolicy | str,
    booster_rate: Decimal = ZERO,
) -> Decimal:
    """
    Pick the accrual rate (percent per period) of a package.

    Args:
        rate_min: Lower bound of the band
        rate_max: Upper bound of the band
        policy: midpoint, minimum or maximum of the band
        booster_rate: Extra percent granted by an achieved booster

    Returns:
        Rate in percent; the booster is added on top of the band and may
        take the rate above rate_max
    """
    policy = RatePolicy(policy)
    if policy == RatePolicy.MINIMUM:
        base = rate_min
    elif policy == RatePolicy.MAXIMUM:
        base = rate_max
    else:
        base = (rate_min + rate_max) / Decimal("2")
    return base + booster_rate


@dataclass(frozen=True)
class AccrualStep:
    """One scheduled accrual."""

    instant: datetime
    rate: Decimal
    amount: Decimal
    clamped: bool


@dataclass
class AccrualPlan:
    """Accruals of one package for a run, in schedule order."""

    steps: list[AccrualStep] = field(default_factory=list)
    roi_paid_after: Decimal = ZERO
    last_instant: datetime | None = None
    matures: bool = False
    matured_at: datetime | None = None
    maturity_reason: str | None = None

    @property
    def total(self) -> Decimal:
        return sum((step.amount for step in self.steps), ZERO)


def plan_accruals(
    principal: Decimal,
    rate: Decimal,
    cap_amount: Decimal,
    roi_paid: Decimal,
    instants: list[datetime],
    maturity_at: datetime | None = None,
) -> AccrualPlan:
    """
    Plan accruals for the due instants of a package.

    Each accrual is principal * rate / 100, clamped to the remaining cap.
    The package matures when the cap is reached (after posting the
    clamped accrual) or at the first instant past maturity_at (which
    itself accrues nothing).

    Args:
        principal: Package principal
        rate: Selected rate in percent
        cap_amount: Lifetime ROI cap
        roi_paid: ROI already paid
        instants: Due instants, oldest first
        maturity_at: Optional fixed maturity

    Returns:
        AccrualPlan
    """
    plan = AccrualPlan(roi_paid_after=roi_paid)
    per_period = percent_of(principal, rate)

    for instant in instants:
        if maturity_at is not None and instant > maturity_at:
            plan.matures = True
            plan.matured_at = instant
            plan.maturity_reason = "maturity_date"
            break

        remaining = cap_amount - plan.roi_paid_after
        if remaining <= 0:
            plan.matures = True
            plan.matured_at = plan.last_instant or instant
            plan.maturity_reason = "cap_reached"
            break

        amount = min(per_period, remaining)
        if amount <= 0:
            break

        plan.steps.append(
            AccrualStep(instant=instant, rate=rate, amount=amount, clamped=amount < per_period)
        )
        plan.roi_paid_after += amount
        plan.last_instant = instant

        if plan.roi_paid_after >= cap_amount:
            plan.matures = True
            plan.matured_at = instant
            plan.maturity_reason = "cap_reached"
            break

    return plan
