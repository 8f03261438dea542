"""
Extraction validator.

Compares what the extraction service read from a statement against the
roster entry the file was matched to. The result is advisory: mismatches
are shown to the reviewer, who decides whether to proceed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..roster import BankAccount
from ..schemas.periods import is_period_contained
from ..schemas.statement import CURRENCY_ALIASES, ExtractedStatement, normalize_currency

logger = logging.getLogger(__name__)

COMPANY_NAME_MISMATCH = "Company name mismatch"
BANK_NAME_MISMATCH = "Bank name mismatch"
ACCOUNT_NUMBER_MISMATCH = "Account number mismatch"
CURRENCY_MISMATCH = "Currency mismatch"
PERIOD_MISMATCH = "Statement period mismatch"
NO_DATA = "No extracted data or bank match"

# Placeholders the extraction service emits when a field is absent
NOT_AVAILABLE_SENTINELS = frozenset({"not available", "not available in text", "n/a"})

__all__ = [
    "CURRENCY_ALIASES",
    "ValidationResult",
    "normalize_currency",
    "validate_extraction",
]


@dataclass
class ValidationResult:
    """Outcome of validating one extraction."""

    is_valid: bool
    mismatches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "mismatches": list(self.mismatches)}


def validate_extraction(
    extracted: ExtractedStatement | None,
    bank: BankAccount | None,
    month: int,
    year: int,
) -> ValidationResult:
    """
    Check extracted fields against the matched bank account.

    Args:
        extracted: Normalized extraction, or None if extraction failed
        bank: Matched roster account
        month: Cycle month the statement is being filed under
        year: Cycle year

    Returns:
        ValidationResult listing every mismatch found
    """
    if extracted is None or bank is None:
        return ValidationResult(is_valid=False, mismatches=[NO_DATA])

    mismatches: list[str] = []

    if bank.company_name:
        extracted_company = (extracted.company_name or "").lower()
        if not extracted_company or bank.company_name.lower() not in extracted_company:
            mismatches.append(COMPANY_NAME_MISMATCH)

    extracted_bank = extracted.bank_name or ""
    if (
        bank.bank_name
        and extracted_bank
        and extracted_bank.strip().lower() not in NOT_AVAILABLE_SENTINELS
        and bank.bank_name.lower() not in extracted_bank.lower()
    ):
        mismatches.append(BANK_NAME_MISMATCH)

    extracted_account = extracted.account_number or ""
    if (
        bank.account_number
        and extracted_account
        and bank.account_number not in extracted_account
        and extracted_account not in bank.account_number
    ):
        mismatches.append(ACCOUNT_NUMBER_MISMATCH)

    extracted_currency = normalize_currency(extracted.currency)
    bank_currency = normalize_currency(bank.currency)
    if extracted_currency and bank_currency and extracted_currency != bank_currency:
        mismatches.append(CURRENCY_MISMATCH)

    if extracted.statement_period and not is_period_contained(
        extracted.statement_period, month, year
    ):
        mismatches.append(PERIOD_MISMATCH)

    if mismatches:
        logger.info(
            "Validation found %d mismatch(es) for bank %d: %s",
            len(mismatches), bank.id, ", ".join(mismatches),
        )

    return ValidationResult(is_valid=not mismatches, mismatches=mismatches)
