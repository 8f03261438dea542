"""
Pipeline services.

Provides:
- PasswordResolver: automatic and manual password resolution
- Cycle resolution (collect, plan, confirm, apply)
- IntakeSession / ProcessingQueue: one-at-a-time processing of a batch
- MultiMonthReplicator: range statements copied into each covered month
- VouchingTracker: per-company sign-off
"""

from .cycle_resolver import CyclePlan, CycleResolver, apply_plan, collect_needed_cycles, plan_cycles
from .password_resolver import PASSWORD_SKIPPED, PasswordResolver
from .processing_queue import (
    CANCELED_BY_USER,
    NO_BANK_MATCHED,
    NO_CONFIRMED_CYCLE,
    IntakeSession,
    NextAction,
    ProcessingQueue,
    SessionReport,
    StageOutcome,
)
from .replicator import MultiMonthReplicator
from .vouching import (
    CompanyGroup,
    VouchingTracker,
    group_by_company,
    unvouched_companies,
    vouch_company_statements,
)

__all__ = [
    "CyclePlan",
    "CycleResolver",
    "apply_plan",
    "collect_needed_cycles",
    "plan_cycles",
    "PASSWORD_SKIPPED",
    "PasswordResolver",
    "CANCELED_BY_USER",
    "NO_BANK_MATCHED",
    "NO_CONFIRMED_CYCLE",
    "IntakeSession",
    "NextAction",
    "ProcessingQueue",
    "SessionReport",
    "StageOutcome",
    "MultiMonthReplicator",
    "CompanyGroup",
    "VouchingTracker",
    "group_by_company",
    "unvouched_companies",
    "vouch_company_statements",
]
