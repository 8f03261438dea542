"""Bank matcher: pairs an uploaded statement file with a known bank account.

Signals are tried in strict priority order and the first hit wins:

1. Account number from the filename equals a roster account number
   (hyphens and spaces ignored)
2. Account numbers contain one another
3. Bank names contain one another
4. A roster bank name or company name appears literally in the filename

The matcher never raises; an item nothing matches is reported as unmatched
and left for manual assignment.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from ..roster import BankAccount, BankRoster
from ..schemas.filename_hints import FileHints, detect_file_hints

logger = logging.getLogger(__name__)


class ConfidenceTier(str, Enum):
    """How a bank account was matched."""

    HIGH = "high"  # exact account number
    MEDIUM_HIGH = "medium_high"  # partial account number
    MEDIUM = "medium"  # bank name
    LOW = "low"  # name found in filename
    MANUAL = "manual"  # chosen by the user
    NONE = "none"

    @property
    def score(self) -> float:
        return TIER_SCORES[self]


TIER_SCORES: dict[ConfidenceTier, float] = {
    ConfidenceTier.HIGH: 1.0,
    ConfidenceTier.MEDIUM_HIGH: 0.9,
    ConfidenceTier.MEDIUM: 0.7,
    ConfidenceTier.LOW: 0.5,
    ConfidenceTier.MANUAL: 1.0,
    ConfidenceTier.NONE: 0.0,
}


@dataclass
class MatchResult:
    """Result of matching one file against the roster."""

    bank: BankAccount | None
    tier: ConfidenceTier
    reasons: list[str] = field(default_factory=list)

    @property
    def is_matched(self) -> bool:
        return self.bank is not None

    @property
    def confidence(self) -> float:
        return self.tier.score

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "bank_id": self.bank.id if self.bank else None,
            "company_id": self.bank.company_id if self.bank else None,
            "tier": self.tier.value,
            "confidence": self.confidence,
            "reasons": self.reasons,
        }


def normalize_account_number(value: str | None) -> str:
    """Strip hyphens and whitespace from an account number."""
    return re.sub(r"[-\s]", "", value or "")


def _contains_either_way(a: str, b: str) -> bool:
    """Bidirectional substring test; empty strings never match."""
    if not a or not b:
        return False
    return a in b or b in a


class BankMatcher:
    """Matches statement files to roster bank accounts.

    In company mode only that company's accounts are candidates; with
    company_id=None (auto-detect mode) the whole roster is searched.
    """

    def __init__(self, roster: BankRoster) -> None:
        self.roster = roster

    def candidates(self, company_id: int | None = None) -> list[BankAccount]:
        if company_id is None:
            return self.roster.list_banks()
        return self.roster.for_company(company_id)

    def match(
        self,
        filename: str,
        hints: FileHints | None = None,
        company_id: int | None = None,
    ) -> MatchResult:
        """Match a file to a bank account.

        Args:
            filename: Uploaded file name.
            hints: Pre-computed filename hints (detected if omitted).
            company_id: Restrict to one company; None searches every company.

        Returns:
            MatchResult; bank is None and tier NONE when nothing matched.
        """
        if hints is None:
            hints = detect_file_hints(filename)
        banks = self.candidates(company_id)

        if not banks:
            logger.debug("No candidate banks for %s (company_id=%s)", filename, company_id)
            return MatchResult(bank=None, tier=ConfidenceTier.NONE, reasons=["No candidate banks"])

        detected_account = normalize_account_number(hints.account_number)
        if detected_account:
            for bank in banks:
                if normalize_account_number(bank.account_number) == detected_account:
                    return self._matched(
                        filename, bank, ConfidenceTier.HIGH,
                        f"Account number {hints.account_number} matches exactly",
                    )

            for bank in banks:
                if _contains_either_way(normalize_account_number(bank.account_number), detected_account):
                    return self._matched(
                        filename, bank, ConfidenceTier.MEDIUM_HIGH,
                        f"Account number {hints.account_number} partially matches {bank.account_number}",
                    )

        detected_bank = (hints.bank_name or "").strip().lower()
        if detected_bank:
            for bank in banks:
                if _contains_either_way(bank.bank_name.strip().lower(), detected_bank):
                    return self._matched(
                        filename, bank, ConfidenceTier.MEDIUM,
                        f"Bank name {hints.bank_name} matches {bank.bank_name}",
                    )

        lower_filename = filename.lower()
        for bank in banks:
            bank_name = bank.bank_name.strip().lower()
            if bank_name and bank_name in lower_filename:
                return self._matched(
                    filename, bank, ConfidenceTier.LOW,
                    f"Bank name {bank.bank_name} found in filename",
                )
            company_name = bank.company_name.strip().lower()
            if company_name and company_name in lower_filename:
                return self._matched(
                    filename, bank, ConfidenceTier.LOW,
                    f"Company name {bank.company_name} found in filename",
                )

        logger.info("No bank match for %s", filename)
        return MatchResult(bank=None, tier=ConfidenceTier.NONE, reasons=["No matching signal"])

    def manual_match(self, bank: BankAccount) -> MatchResult:
        """Record a user's explicit choice; always overrides automatic matches."""
        return MatchResult(
            bank=bank,
            tier=ConfidenceTier.MANUAL,
            reasons=[f"Manually assigned to {bank.bank_name} {bank.account_number}"],
        )

    def _matched(
        self, filename: str, bank: BankAccount, tier: ConfidenceTier, reason: str
    ) -> MatchResult:
        logger.debug("Matched %s to bank %d (%s): %s", filename, bank.id, tier.value, reason)
        return MatchResult(bank=bank, tier=tier, reasons=[reason])
