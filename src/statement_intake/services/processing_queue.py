"""
Processing queue and intake session.

An IntakeSession owns one batch of uploaded files:

1. add_file()  - filename hints + bank matching, item queued as pending
2. run():
   a. password resolution for every queued item (one manual batch)
   b. extraction pass, one item at a time: processing -> matched/unmatched
   c. cycle resolution over every detected period (one confirmation)
   d. persistence pass in queue order: manual match, validation,
      blob upload, record upsert, range replication -> uploaded/failed

The queue holds item indices into the session's ItemArena and has at most
one item in flight. Each stage turns (item, external result) into a
StageOutcome naming the next status and whether the item continues or the
queue advances. Failures are local: the item is failed with a reason and
the queue moves on.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..config import PasswordConfig
from ..extractors import BaseExtractor, ExtractionError, ExtractionOutcome
from ..matching import BankMatcher
from ..review import ReviewDecision, Reviewer
from ..roster import BankRoster
from ..schemas.filename_hints import detect_file_hints
from ..schemas.intake import DocumentItem, ItemArena, ItemStatus
from ..schemas.periods import MonthYear, parse_period
from ..state_store import CycleRecord, StatementType, StateStore
from ..storage import BlobStore, BlobStoreError, statement_blob_key
from ..validation import validate_extraction
from .cycle_resolver import CycleResolver, item_months
from .password_resolver import PasswordChecker, PasswordResolver
from .replicator import MultiMonthReplicator, statement_document, statement_payload

logger = logging.getLogger(__name__)

CANCELED_BY_USER = "canceled by user"
NO_BANK_MATCHED = "no bank account matched"
NO_CONFIRMED_CYCLE = "no confirmed statement cycle"


class NextAction(str, Enum):
    """What the queue does after a stage."""

    CONTINUE = "continue"  # same item, next stage
    ADVANCE = "advance"  # item is done, next item


@dataclass
class StageOutcome:
    """Result of running one stage on one item."""

    status: ItemStatus | None
    action: NextAction
    reason: str | None = None

    @classmethod
    def fail(cls, reason: str) -> StageOutcome:
        return cls(status=ItemStatus.FAILED, action=NextAction.ADVANCE, reason=reason)


def apply_outcome(item: DocumentItem, outcome: StageOutcome) -> None:
    """Move an item to the outcome's status."""
    if outcome.status is None or outcome.status == item.status:
        return
    if outcome.status == ItemStatus.FAILED:
        item.fail(outcome.reason or "Failed")
    else:
        item.transition(outcome.status)


def extraction_stage(
    item: DocumentItem, result: ExtractionOutcome | ExtractionError
) -> StageOutcome:
    """
    Record an extraction result and parse the statement period.

    Extraction failures do not fail the item: it is persisted later
    without extracted fields.
    """
    if isinstance(result, ExtractionError):
        logger.warning("Extraction failed for %s: %s", item.filename, result)
        item.extraction = ExtractionOutcome.failed(str(result))
    else:
        item.extraction = result
        if result.requires_password:
            logger.warning("Extraction service needs a password for %s", item.filename)
        elif not result.usable:
            logger.warning(
                "Extraction unsuccessful for %s: %s", item.filename, result.message or "no data"
            )

    extracted = item.extraction.extracted_data if item.extraction.usable else None
    if extracted is not None and extracted.statement_period:
        item.period = parse_period(extracted.statement_period)

    status = ItemStatus.MATCHED if item.is_matched else ItemStatus.UNMATCHED
    return StageOutcome(status=status, action=NextAction.CONTINUE)


def manual_match_stage(item: DocumentItem, choice) -> StageOutcome:
    """Apply the reviewer's bank choice for an unmatched item."""
    if choice is None:
        return StageOutcome.fail(NO_BANK_MATCHED)
    item.match = choice
    return StageOutcome(status=ItemStatus.MATCHED, action=NextAction.CONTINUE)


def validation_stage(item: DocumentItem, decision: ReviewDecision) -> StageOutcome:
    """Apply the reviewer's decision on validation mismatches."""
    if decision == ReviewDecision.CANCEL:
        return StageOutcome.fail(CANCELED_BY_USER)
    return StageOutcome(status=None, action=NextAction.CONTINUE)


def persistence_stage(item: DocumentItem, result: list[int] | Exception) -> StageOutcome:
    """Record the statement ids written, or the persistence error."""
    if isinstance(result, Exception):
        logger.error("Persisting %s failed: %s", item.filename, result)
        return StageOutcome.fail(str(result) or result.__class__.__name__)
    item.statement_ids = list(result)
    return StageOutcome(status=ItemStatus.UPLOADED, action=NextAction.ADVANCE)


class ProcessingQueue:
    """FIFO of item indices with at most one item in flight."""

    def __init__(self) -> None:
        self._pending: deque[int] = deque()
        self.current: int | None = None

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, index: int) -> None:
        if index in self._pending or index == self.current:
            return
        self._pending.append(index)

    def snapshot(self) -> list[int]:
        return list(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def drain(self, handler: Callable[[int], None]) -> list[int]:
        """Pop and handle items one at a time. Returns the handled order."""
        handled = []
        while self._pending:
            self.current = self._pending.popleft()
            try:
                handler(self.current)
            finally:
                handled.append(self.current)
                self.current = None
        return handled


@dataclass
class ItemReport:
    """Final state of one file."""

    index: int
    filename: str
    status: ItemStatus
    bank_id: int | None
    match_tier: str | None
    period: str | None
    statement_ids: list[int]
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "filename": self.filename,
            "status": self.status.value,
            "bank_id": self.bank_id,
            "match_tier": self.match_tier,
            "period": self.period,
            "statement_ids": self.statement_ids,
            "error": self.error,
        }


@dataclass
class SessionReport:
    """Summary of a session run."""

    items: list[ItemReport] = field(default_factory=list)
    cycles: list[str] = field(default_factory=list)

    def count(self, status: ItemStatus) -> int:
        return sum(1 for item in self.items if item.status == status)

    @property
    def uploaded(self) -> int:
        return self.count(ItemStatus.UPLOADED)

    @property
    def failed(self) -> int:
        return self.count(ItemStatus.FAILED)


class IntakeSession:
    """One batch of statement files filed under a target month."""

    def __init__(
        self,
        roster: BankRoster,
        store: StateStore,
        blob_store: BlobStore,
        extractor: BaseExtractor,
        reviewer: Reviewer,
        password_checker: PasswordChecker,
        target_month: int,
        target_year: int,
        company_id: int | None = None,
        password_config: PasswordConfig | None = None,
    ):
        """
        Args:
            company_id: Restrict matching to one company; None auto-detects
                across the whole roster.
        """
        if not 1 <= target_month <= 12:
            raise ValueError(f"Invalid target month: {target_month}")

        self.roster = roster
        self.store = store
        self.blob_store = blob_store
        self.extractor = extractor
        self.reviewer = reviewer
        self.target = MonthYear(year=target_year, month=target_month)
        self.company_id = company_id

        self.arena = ItemArena()
        self.queue = ProcessingQueue()
        self.matcher = BankMatcher(roster)
        self.passwords = PasswordResolver(password_checker, reviewer, roster, password_config)
        self.cycles = CycleResolver(store, reviewer)
        self.replicator = MultiMonthReplicator(store)

    def add_file(self, filename: str, payload: bytes) -> int:
        """Register an uploaded file; hints and matching run immediately."""
        hints = detect_file_hints(filename)
        item = DocumentItem(filename=filename, payload=payload, hints=hints)
        item.match = self.matcher.match(filename, hints, company_id=self.company_id)
        index = self.arena.add(item)
        self.queue.enqueue(index)
        logger.info(
            "Queued %s (match: %s)", filename, item.match.tier.value if item.match else "none"
        )
        return index

    def set_manual_match(self, index: int, bank_id: int) -> None:
        """
        Assign an item to a roster account chosen by the user.

        Replaces any automatic match, including one outside the session's
        company. Items already persisted cannot be reassigned.

        Raises:
            KeyError: If the bank account is not in the roster
            ValueError: If the item is already uploaded or vouched
        """
        item = self.arena[index]
        if item.status in (ItemStatus.UPLOADED, ItemStatus.VOUCHED):
            raise ValueError(f"{item.filename} is already {item.status.value}")
        bank = self.roster.get(bank_id)
        if bank is None:
            raise KeyError(f"Bank account {bank_id} is not in the roster")

        previous = item.match.tier.value if item.match is not None else "none"
        item.match = self.matcher.manual_match(bank)
        if item.status == ItemStatus.UNMATCHED:
            item.transition(ItemStatus.MATCHED)
        logger.info(
            "Manually matched %s to bank %d (was %s)", item.filename, bank.id, previous
        )

    def resubmit(self, index: int) -> None:
        """Queue a failed item again."""
        item = self.arena[index]
        item.resubmit()
        self.queue.enqueue(index)

    def run(self) -> SessionReport:
        """Process every queued item. Returns the session report."""
        order = self.queue.snapshot()
        self.queue.clear()
        if not order:
            return self.report([])

        self.passwords.resolve(self.arena, order)

        for index in order:
            if self.arena[index].status == ItemStatus.PENDING:
                self.queue.enqueue(index)
        self.queue.drain(self._extract)

        live = [self.arena[i] for i in order if self.arena[i].status != ItemStatus.FAILED]
        cycles = self.cycles.resolve(live, self.target) if live else {}

        for index in order:
            if self.arena[index].status in (ItemStatus.MATCHED, ItemStatus.UNMATCHED):
                self.queue.enqueue(index)
        self.queue.drain(lambda index: self._persist(index, cycles))

        return self.report(order, sorted(cycles))

    def _extract(self, index: int) -> None:
        item = self.arena[index]
        item.transition(ItemStatus.PROCESSING)
        try:
            result = self.extractor.extract(
                item.payload, item.filename, self.target.month, self.target.year, item.password
            )
        except ExtractionError as e:
            result = e
        apply_outcome(item, extraction_stage(item, result))

    def _persist(self, index: int, cycles: dict[str, CycleRecord]) -> None:
        item = self.arena[index]

        if item.status == ItemStatus.UNMATCHED:
            bank = self.reviewer.choose_bank(item.filename, self.roster.list_banks())
            choice = self.matcher.manual_match(bank) if bank is not None else None
            outcome = manual_match_stage(item, choice)
            apply_outcome(item, outcome)
            if outcome.action == NextAction.ADVANCE:
                logger.warning("%s: %s", item.filename, outcome.reason)
                return

        covered = [m for m in item_months(item, self.target) if m.key in cycles]
        if not covered:
            apply_outcome(item, StageOutcome.fail(NO_CONFIRMED_CYCLE))
            logger.warning("%s: %s", item.filename, NO_CONFIRMED_CYCLE)
            return
        primary = self.target if self.target in covered else covered[0]

        extraction = item.extraction
        if extraction is not None and extraction.usable:
            item.validation = validate_extraction(
                extraction.extracted_data, item.bank, primary.month, primary.year
            )
            if not item.validation.is_valid:
                decision = self.reviewer.confirm_validation(item.filename, item.validation)
                outcome = validation_stage(item, decision)
                apply_outcome(item, outcome)
                if outcome.action == NextAction.ADVANCE:
                    logger.info("%s: %s", item.filename, outcome.reason)
                    return

        try:
            result: list[int] | Exception = self._write(item, primary, cycles)
        except (sqlite3.Error, BlobStoreError, OSError) as e:
            result = e
        apply_outcome(item, persistence_stage(item, result))

    def _write(self, item: DocumentItem, primary: MonthYear, cycles: dict[str, CycleRecord]) -> list[int]:
        bank = item.bank
        key = statement_blob_key(
            company_id=bank.company_id,
            company_name=bank.company_name,
            bank_id=bank.id,
            month=primary.month,
            year=primary.year,
        )
        stored_key = self.blob_store.put(key, item.payload)

        is_range = item.period is not None and item.period.is_multi_month
        payload = statement_payload(
            item,
            cycle_id=cycles[primary.key].id,
            document=statement_document(item, stored_key),
            statement_type=StatementType.RANGE if is_range else StatementType.MONTHLY,
            validation=item.validation,
        )
        record = self.store.upsert_statement(bank.id, primary.month, primary.year, payload)
        ids = [record.id]

        if is_range:
            children = self.replicator.replicate(record, item, primary, set(cycles))
            ids.extend(child.id for child in children)

        logger.info("Stored %s as statement %d (%s)", item.filename, record.id, primary.key)
        return ids

    def report(self, order: list[int] | None = None, cycles: list[str] | None = None) -> SessionReport:
        indices = self.arena.indices() if order is None else order
        items = []
        for index in indices:
            item = self.arena[index]
            items.append(
                ItemReport(
                    index=index,
                    filename=item.filename,
                    status=item.status,
                    bank_id=item.bank.id if item.bank else None,
                    match_tier=item.match.tier.value if item.match else None,
                    period=(
                        f"{item.period.start.key}..{item.period.end.key}" if item.period else None
                    ),
                    statement_ids=list(item.statement_ids),
                    error=item.error,
                )
            )
        return SessionReport(items=items, cycles=list(cycles or []))
