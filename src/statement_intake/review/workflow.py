"""
User confirmation workflow.

The intake pipeline stops at four points to ask a person:

- which passwords open the protected files it could not open itself
- which statement cycles to use (and create)
- which bank account an unmatched file belongs to
- whether to keep a statement whose extracted data disagrees with the roster

A Reviewer answers those questions. ConsoleReviewer asks on a terminal;
AutoReviewer answers from preset choices, for unattended runs and tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..roster import BankAccount
    from ..services.cycle_resolver import CyclePlan
    from ..validation import ValidationResult

logger = logging.getLogger(__name__)


class ReviewDecision(str, Enum):
    """User's decision on a statement with validation mismatches."""

    PROCEED = "PROCEED"  # persist anyway
    CANCEL = "CANCEL"  # drop this file


@dataclass
class PasswordRequest:
    """A file waiting for a manually entered password."""

    index: int
    filename: str
    bank_label: str | None = None
    attempt: int = 1
    last_error: str | None = None


class Reviewer:
    """Interface for user confirmation steps."""

    def request_passwords(self, requests: list[PasswordRequest]) -> dict[int, str] | None:
        """Ask for passwords for a batch of files.

        Returns:
            Mapping of item index to password (missing entries stay
            unresolved), or None to skip every file in the batch.
        """
        raise NotImplementedError(f"{self.__class__.__name__}.request_passwords() must be implemented")

    def confirm_cycles(self, plan: CyclePlan) -> set[str]:
        """Return the cycle keys to use; the default is every needed key."""
        raise NotImplementedError(f"{self.__class__.__name__}.confirm_cycles() must be implemented")

    def choose_bank(self, filename: str, candidates: list[BankAccount]) -> BankAccount | None:
        """Pick the bank account for an unmatched file, or None for none."""
        raise NotImplementedError(f"{self.__class__.__name__}.choose_bank() must be implemented")

    def confirm_validation(self, filename: str, result: ValidationResult) -> ReviewDecision:
        """Decide whether to keep a statement that failed validation."""
        raise NotImplementedError(f"{self.__class__.__name__}.confirm_validation() must be implemented")


class AutoReviewer(Reviewer):
    """
    Non-interactive reviewer with preset answers.

    Args:
        passwords: filename -> password to supply when asked
        bank_choices: filename -> bank id for unmatched files
        deselected_cycles: cycle keys to leave out
        validation_decision: answer for every validation prompt
    """

    def __init__(
        self,
        passwords: Mapping[str, str] | None = None,
        bank_choices: Mapping[str, int] | None = None,
        deselected_cycles: Iterable[str] = (),
        validation_decision: ReviewDecision = ReviewDecision.PROCEED,
    ):
        self.passwords = dict(passwords or {})
        self.bank_choices = dict(bank_choices or {})
        self.deselected_cycles = set(deselected_cycles)
        self.validation_decision = validation_decision
        self.password_requests: list[list[PasswordRequest]] = []
        self.validation_prompts: list[tuple[str, list[str]]] = []

    def request_passwords(self, requests: list[PasswordRequest]) -> dict[int, str] | None:
        self.password_requests.append(list(requests))
        answers = {r.index: self.passwords[r.filename] for r in requests if r.filename in self.passwords}
        return answers or None

    def confirm_cycles(self, plan: CyclePlan) -> set[str]:
        return {key for key in plan.needed if key not in self.deselected_cycles}

    def choose_bank(self, filename: str, candidates: list[BankAccount]) -> BankAccount | None:
        bank_id = self.bank_choices.get(filename)
        if bank_id is None:
            return None
        return next((b for b in candidates if b.id == bank_id), None)

    def confirm_validation(self, filename: str, result: ValidationResult) -> ReviewDecision:
        self.validation_prompts.append((filename, list(result.mismatches)))
        return self.validation_decision


class ConsoleReviewer(Reviewer):
    """Terminal reviewer."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ):
        self._input = input_fn
        self._print = output_fn

    def _ask(self, prompt: str) -> str:
        try:
            return self._input(prompt).strip()
        except EOFError:
            return ""

    def request_passwords(self, requests: list[PasswordRequest]) -> dict[int, str] | None:
        self._print(f"\n🔒 {len(requests)} file(s) need a password (enter 's' to skip all)")
        answers: dict[int, str] = {}
        for request in requests:
            label = f" [{request.bank_label}]" if request.bank_label else ""
            note = f" ({request.last_error})" if request.last_error else ""
            answer = self._ask(f"  {request.filename}{label}{note} password: ")
            if answer.lower() == "s":
                return None
            if answer:
                answers[request.index] = answer
        return answers or None

    def confirm_cycles(self, plan: CyclePlan) -> set[str]:
        self._print("\n📅 Statement cycles")
        for key in plan.needed:
            marker = "exists" if key in plan.existing else "new"
            self._print(f"  {key} ({marker})")
        answer = self._ask("Cycles to leave out (comma separated, blank for none): ")
        excluded = {part.strip() for part in answer.split(",") if part.strip()}
        return {key for key in plan.needed if key not in excluded}

    def choose_bank(self, filename: str, candidates: list[BankAccount]) -> BankAccount | None:
        if not candidates:
            return None
        self._print(f"\n❓ No bank account matched {filename}")
        for position, bank in enumerate(candidates, start=1):
            self._print(f"  {position}. {bank.company_name} | {bank.bank_name} | {bank.account_number}")
        answer = self._ask("Account to use (number, blank to skip): ")
        if not answer.isdigit():
            return None
        position = int(answer)
        if 1 <= position <= len(candidates):
            return candidates[position - 1]
        return None

    def confirm_validation(self, filename: str, result: ValidationResult) -> ReviewDecision:
        self._print(f"\n⚠️  {filename}: {', '.join(result.mismatches)}")
        answer = self._ask("Keep this statement? [y/N]: ")
        if answer.lower() in {"y", "yes"}:
            return ReviewDecision.PROCEED
        return ReviewDecision.CANCEL
