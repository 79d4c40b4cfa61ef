"""
Commission runs package.

- engines: one adapter per commission type (subjects, lock, plan, apply)
- orchestrator: preview, execute, retry and watchdog of runs
"""

from compensation.services.runs.engines import ENGINES, RunContext, RunEngine, WorkPlan
from compensation.services.runs.orchestrator import CommissionRunOrchestrator, RunPreview


__all__ = [
    "ENGINES",
    "CommissionRunOrchestrator",
    "RunContext",
    "RunEngine",
    "RunPreview",
    "WorkPlan",
]
