"""
Password resolution for protected statement files.

Each item starts UNKNOWN. Unprotected files become CLEAR. For protected
files the known candidates are tried in order:

1. a password already applied to this item
2. the matched bank account's stored password
3. a password found in the filename
4. (optional) every other stored password of the matched company,
   accounts at the same bank first

The first one that opens the file is APPLIED. Files still PROTECTED are
collected into one manual-entry batch; the reviewer is asked again for the
files it did not resolve, up to max_manual_attempts rounds. "Skip all", or
running out of rounds, fails the remaining files without affecting the
rest of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from ..config import PasswordConfig
from ..review import PasswordRequest, Reviewer
from ..roster import BankRoster
from ..schemas.intake import DocumentItem, ItemArena, ItemStatus, PasswordState

logger = logging.getLogger(__name__)

PASSWORD_SKIPPED = "password required but not provided"
WRONG_PASSWORD = "Incorrect password"


class PasswordChecker(Protocol):
    def is_protected(self, payload: bytes) -> bool: ...

    def verify(self, payload: bytes, password: str | None) -> bool: ...


class PasswordResolver:
    """Drives items from UNKNOWN to CLEAR/APPLIED, or fails them."""

    def __init__(
        self,
        checker: PasswordChecker,
        reviewer: Reviewer,
        roster: BankRoster | None = None,
        config: PasswordConfig | None = None,
    ):
        self.checker = checker
        self.reviewer = reviewer
        self.roster = roster
        self.config = config or PasswordConfig()

    def candidates(self, item: DocumentItem) -> list[str]:
        """Ordered, de-duplicated password candidates for an item."""
        ordered: list[str | None] = [item.password]
        bank = item.bank
        if bank is not None:
            ordered.append(bank.stored_password)
        ordered.append(item.hints.password)

        if self.config.try_company_passwords and bank is not None and self.roster is not None:
            siblings = [b for b in self.roster.for_company(bank.company_id) if b.id != bank.id]
            same_bank = [b for b in siblings if b.bank_name.lower() == bank.bank_name.lower()]
            others = [b for b in siblings if b not in same_bank]
            ordered.extend(b.stored_password for b in same_bank + others)

        return list(dict.fromkeys(p for p in ordered if p))

    def detect(self, item: DocumentItem) -> PasswordState:
        """Classify an UNKNOWN item as CLEAR or PROTECTED."""
        if item.password_state == PasswordState.UNKNOWN:
            protected = self.checker.is_protected(item.payload)
            item.password_state = PasswordState.PROTECTED if protected else PasswordState.CLEAR
        return item.password_state

    def try_automatic(self, item: DocumentItem) -> bool:
        """Try every known candidate. Returns True if the item is usable."""
        state = self.detect(item)
        if state in (PasswordState.CLEAR, PasswordState.APPLIED):
            return True

        for candidate in self.candidates(item):
            if self.checker.verify(item.payload, candidate):
                self._apply(item, candidate)
                return True

        logger.info("No known password opens %s", item.filename)
        return False

    def _apply(self, item: DocumentItem, password: str) -> None:
        item.password = password
        item.password_state = PasswordState.APPLIED
        logger.info("Password applied to %s", item.filename)

    def resolve(self, arena: ItemArena, indices: Iterable[int]) -> list[int]:
        """
        Resolve passwords for a batch of pending items.

        Returns:
            Indices of items that failed for lack of a password
        """
        unresolved = [
            i for i in indices
            if arena[i].status == ItemStatus.PENDING and not self.try_automatic(arena[i])
        ]
        errors: dict[int, str] = {}

        for attempt in range(1, self.config.max_manual_attempts + 1):
            if not unresolved:
                break

            requests = [
                PasswordRequest(
                    index=i,
                    filename=arena[i].filename,
                    bank_label=self._bank_label(arena[i]),
                    attempt=attempt,
                    last_error=errors.get(i),
                )
                for i in unresolved
            ]
            answers = self.reviewer.request_passwords(requests)
            if answers is None:
                logger.info("Password entry skipped for %d file(s)", len(unresolved))
                break

            still_unresolved = []
            for i in unresolved:
                supplied = answers.get(i)
                if supplied and self.checker.verify(arena[i].payload, supplied):
                    self._apply(arena[i], supplied)
                else:
                    if supplied:
                        errors[i] = WRONG_PASSWORD
                    still_unresolved.append(i)
            unresolved = still_unresolved

        for i in unresolved:
            arena[i].fail(PASSWORD_SKIPPED)
            logger.warning("%s: %s", arena[i].filename, PASSWORD_SKIPPED)

        return unresolved

    @staticmethod
    def _bank_label(item: DocumentItem) -> str | None:
        bank = item.bank
        if bank is None:
            return None
        return f"{bank.company_name} / {bank.bank_name} {bank.account_number}"
