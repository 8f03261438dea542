"""
Intake items and their lifecycle.

Every uploaded file becomes one DocumentItem. Items live in an ItemArena
(an indexed list); queues, groups and reports refer to items by their
integer index, never by holding the objects themselves.

Lifecycle:

    pending -> processing -> matched | unmatched
    unmatched -> matched            (manual match)
    matched -> uploaded             (persisted)
    uploaded <-> vouched            (sign-off / undo)
    any active state -> failed
    failed -> pending               (resubmission)

Any other move raises InvalidTransitionError.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .filename_hints import FileHints
from .periods import StatementPeriod

if TYPE_CHECKING:
    from ..extractors.base import ExtractionOutcome
    from ..matching.engine import MatchResult
    from ..validation.validator import ValidationResult


class InvalidTransitionError(Exception):
    """Raised when an item is moved to a state its current state cannot reach."""

    def __init__(self, current: ItemStatus, target: ItemStatus):
        self.current = current
        self.target = target
        super().__init__(f"Illegal status transition: {current.value} -> {target.value}")


class ItemStatus(str, Enum):
    """Processing status of an uploaded file."""

    PENDING = "pending"
    PROCESSING = "processing"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    UPLOADED = "uploaded"
    FAILED = "failed"
    VOUCHED = "vouched"

    def can_transition_to(self, target: ItemStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.PROCESSING, ItemStatus.FAILED}),
    ItemStatus.PROCESSING: frozenset(
        {ItemStatus.MATCHED, ItemStatus.UNMATCHED, ItemStatus.FAILED}
    ),
    ItemStatus.MATCHED: frozenset({ItemStatus.UPLOADED, ItemStatus.FAILED}),
    ItemStatus.UNMATCHED: frozenset({ItemStatus.MATCHED, ItemStatus.FAILED}),
    ItemStatus.UPLOADED: frozenset({ItemStatus.VOUCHED}),
    ItemStatus.VOUCHED: frozenset({ItemStatus.UPLOADED}),
    ItemStatus.FAILED: frozenset({ItemStatus.PENDING}),
}


class PasswordState(str, Enum):
    """Password protection state of an item's payload."""

    UNKNOWN = "unknown"
    CLEAR = "clear"  # not protected
    PROTECTED = "protected"  # protected, no working password yet
    APPLIED = "applied"  # protected, password verified


@dataclass
class DocumentItem:
    """One uploaded statement file moving through the pipeline."""

    filename: str
    payload: bytes
    hints: FileHints = field(default_factory=FileHints)
    match: MatchResult | None = None
    password_state: PasswordState = PasswordState.UNKNOWN
    password: str | None = None
    extraction: ExtractionOutcome | None = None
    period: StatementPeriod | None = None
    validation: ValidationResult | None = None
    status: ItemStatus = ItemStatus.PENDING
    error: str | None = None
    statement_ids: list[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.payload).hexdigest()

    @property
    def bank(self):
        """Matched BankAccount, or None."""
        return self.match.bank if self.match is not None else None

    @property
    def is_matched(self) -> bool:
        return self.bank is not None

    def transition(self, target: ItemStatus) -> None:
        """Move to a new status.

        Raises:
            InvalidTransitionError: If the move is not allowed from the current status
        """
        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(self.status, target)
        self.status = target

    def fail(self, reason: str) -> None:
        """Mark the item failed with a reason."""
        self.transition(ItemStatus.FAILED)
        self.error = reason

    def resubmit(self) -> None:
        """Put a failed item back into the pending state."""
        self.transition(ItemStatus.PENDING)
        self.error = None
        self.extraction = None
        self.period = None
        self.validation = None
        self.statement_ids = []


class ItemArena:
    """Owns the DocumentItems of a session; items are addressed by index."""

    def __init__(self) -> None:
        self._items: list[DocumentItem] = []

    def add(self, item: DocumentItem) -> int:
        """Store an item and return its index."""
        self._items.append(item)
        return len(self._items) - 1

    def __getitem__(self, index: int) -> DocumentItem:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[DocumentItem]:
        return iter(self._items)

    def indices(self) -> range:
        return range(len(self._items))

    def with_status(self, *statuses: ItemStatus) -> list[int]:
        """Indices of items currently in any of the given statuses."""
        return [i for i, item in enumerate(self._items) if item.status in statuses]
