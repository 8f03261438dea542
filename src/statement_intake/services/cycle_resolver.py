"""
Cycle resolution.

After every file in a batch has been extracted, the months their
statements cover are collected into one set of cycle keys ("YYYY-MM").
The store tells which cycles already exist, the reviewer confirms which
to use, and the selected missing ones are created.

Only selected cycles receive records: a file whose months were all
deselected is not persisted, and replicated months that were deselected
are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..review import Reviewer
from ..schemas.intake import DocumentItem, ItemStatus
from ..schemas.periods import MonthYear
from ..state_store import CycleRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class CyclePlan:
    """Cycles needed by a batch, split by whether they already exist."""

    needed: list[str]
    existing: list[str] = field(default_factory=list)
    to_create: list[str] = field(default_factory=list)


def item_months(item: DocumentItem, target: MonthYear) -> list[MonthYear]:
    """Months an item's statement covers; the target month when unknown."""
    if item.period is not None:
        months = item.period.months()
        if months:
            return months
    return [target]


def collect_needed_cycles(items: Iterable[DocumentItem], target: MonthYear) -> list[str]:
    """
    Union of the cycle keys every live item covers, sorted.

    Failed items are ignored. An item without a parsed period contributes
    the target cycle; an empty batch falls back to the target.
    """
    keys: set[str] = set()
    for item in items:
        if item.status == ItemStatus.FAILED:
            continue
        keys.update(month.key for month in item_months(item, target))
    if not keys:
        keys.add(target.key)
    return sorted(keys)


def plan_cycles(store: StateStore, needed: Iterable[str]) -> CyclePlan:
    """Partition needed keys into existing and to-create."""
    plan = CyclePlan(needed=sorted(set(needed)))
    for key in plan.needed:
        if store.find_cycle(key) is not None:
            plan.existing.append(key)
        else:
            plan.to_create.append(key)
    return plan


def apply_plan(store: StateStore, plan: CyclePlan, selected: Iterable[str]) -> dict[str, CycleRecord]:
    """
    Create the selected cycles that do not exist yet.

    Keys outside the plan are ignored. Creation is idempotent.

    Returns:
        Selected cycle key -> CycleRecord
    """
    selected = set(selected)
    chosen = [key for key in plan.needed if key in selected]
    cycles: dict[str, CycleRecord] = {}
    for key in chosen:
        cycles[key] = store.resolve_cycle(key)
    created = [key for key in chosen if key in plan.to_create]
    if created:
        logger.info("Created %d cycle(s): %s", len(created), ", ".join(created))
    return cycles


class CycleResolver:
    """Collect -> plan -> confirm -> apply, in one call."""

    def __init__(self, store: StateStore, reviewer: Reviewer):
        self.store = store
        self.reviewer = reviewer

    def resolve(self, items: Iterable[DocumentItem], target: MonthYear) -> dict[str, CycleRecord]:
        plan = plan_cycles(self.store, collect_needed_cycles(items, target))
        selected = self.reviewer.confirm_cycles(plan)
        deselected = [key for key in plan.needed if key not in selected]
        if deselected:
            logger.info("Cycles deselected: %s", ", ".join(deselected))
        return apply_plan(self.store, plan, selected)
