"""
ROI accrual package.

- schedule: accrual instants of a package
- calculator: rate selection and cap-clamped accrual planning
- engine: plans and posts accruals, matures packages
"""

from compensation.services.roi.calculator import AccrualPlan, plan_accruals, select_rate
from compensation.services.roi.engine import RoiEngine, RoiPackagePlan, roi_event_id
from compensation.services.roi.schedule import iter_due_instants, next_instant


__all__ = [
    "AccrualPlan",
    "RoiEngine",
    "RoiPackagePlan",
    "iter_due_instants",
    "next_instant",
    "plan_accruals",
    "roi_event_id",
    "select_rate",
]
