"""
Vouching (per-company sign-off).

Uploaded statements are grouped by the company of their matched bank.
A group is vouched only when every member is. Vouching a group writes the
flag to every statement record of every member (range children included)
in one transaction, then moves the items between uploaded and vouched.

Groups are never stored; they are rebuilt from the items on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..schemas.intake import ItemArena, ItemStatus
from ..state_store import StateStore

logger = logging.getLogger(__name__)

VOUCHABLE = (ItemStatus.UPLOADED, ItemStatus.VOUCHED)


@dataclass
class CompanyGroup:
    """Uploaded items of one company."""

    company_id: int
    company_name: str
    item_indices: list[int] = field(default_factory=list)
    is_vouched: bool = False


def group_by_company(arena: ItemArena) -> list[CompanyGroup]:
    """Group uploaded/vouched items by company, in first-seen order."""
    groups: dict[int, CompanyGroup] = {}
    for index in arena.indices():
        item = arena[index]
        if item.status not in VOUCHABLE or item.bank is None:
            continue
        bank = item.bank
        group = groups.setdefault(
            bank.company_id,
            CompanyGroup(company_id=bank.company_id, company_name=bank.company_name),
        )
        group.item_indices.append(index)

    for group in groups.values():
        group.is_vouched = all(arena[i].status == ItemStatus.VOUCHED for i in group.item_indices)
    return list(groups.values())


class VouchingTracker:
    """Applies vouching decisions to items and their statement records."""

    def __init__(self, store: StateStore, arena: ItemArena):
        self.store = store
        self.arena = arena

    def groups(self) -> list[CompanyGroup]:
        return group_by_company(self.arena)

    def get_group(self, company_id: int) -> CompanyGroup | None:
        return next((g for g in self.groups() if g.company_id == company_id), None)

    def set_group_vouched(
        self, company_id: int, vouched: bool, notes: str | None = None
    ) -> CompanyGroup:
        """
        Vouch or un-vouch every member of a company group.

        Raises:
            KeyError: If the company has no uploaded items
        """
        group = self.get_group(company_id)
        if group is None:
            raise KeyError(f"No uploaded statements for company {company_id}")

        statement_ids = [sid for i in group.item_indices for sid in self.arena[i].statement_ids]
        updated = self.store.set_vouched(statement_ids, vouched, notes)

        target = ItemStatus.VOUCHED if vouched else ItemStatus.UPLOADED
        for index in group.item_indices:
            item = self.arena[index]
            if item.status != target:
                item.transition(target)

        logger.info(
            "%s company %d (%s): %d record(s)",
            "Vouched" if vouched else "Un-vouched", company_id, group.company_name, updated,
        )
        return self.get_group(company_id)

    def next_unvouched(self, after: int | None = None) -> CompanyGroup | None:
        """
        The next unvouched group after the given company, wrapping around.

        With after=None the first unvouched group is returned.
        """
        groups = self.groups()
        if after is not None:
            position = next((n for n, g in enumerate(groups) if g.company_id == after), -1)
            groups = groups[position + 1:] + groups[: position + 1]
        return next((g for g in groups if not g.is_vouched), None)


def vouch_company_statements(
    store: StateStore,
    company_id: int,
    vouched: bool,
    month: int | None = None,
    year: int | None = None,
    notes: str | None = None,
) -> int:
    """Vouch persisted records of a company directly (outside a session).

    Returns:
        Number of records updated
    """
    records = store.list_statements(month=month, year=year, company_id=company_id)
    return store.set_vouched((r.id for r in records), vouched, notes)


def unvouched_companies(store: StateStore, month: int, year: int) -> list[int]:
    """Company ids with at least one unvouched record in a month."""
    records = store.list_statements(month=month, year=year)
    return sorted({r.company_id for r in records if not r.is_vouched})
