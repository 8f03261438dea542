"""
Bank/company roster.

The roster is the read-only list of known bank accounts, one entry per
account, each belonging to a company. It is loaded from YAML:

    companies:
      - id: 1
        name: "Acme Ltd"
        banks:
          - id: 10
            bank_name: "KCB"
            account_number: "1234567890"
            currency: "KES"
            password: "4321"       # optional statement password
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class RosterError(Exception):
    """Raised when the roster file is missing or malformed."""

    pass


@dataclass(frozen=True)
class BankAccount:
    """A known bank account (read-only)."""

    id: int
    company_id: int
    company_name: str
    bank_name: str
    account_number: str
    stored_password: str | None = None
    currency: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "company_name": self.company_name,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "currency": self.currency,
        }


class BankRoster:
    """In-memory roster of bank accounts."""

    def __init__(self, banks: Iterable[BankAccount]):
        self._banks: list[BankAccount] = list(banks)
        seen: set[int] = set()
        for bank in self._banks:
            if bank.id in seen:
                raise RosterError(f"Duplicate bank id in roster: {bank.id}")
            seen.add(bank.id)

    def __len__(self) -> int:
        return len(self._banks)

    def __iter__(self) -> Iterator[BankAccount]:
        return iter(self._banks)

    def list_banks(self) -> list[BankAccount]:
        """All known accounts, in roster order."""
        return list(self._banks)

    def for_company(self, company_id: int) -> list[BankAccount]:
        """Accounts belonging to one company."""
        return [b for b in self._banks if b.company_id == company_id]

    def get(self, bank_id: int) -> BankAccount | None:
        for bank in self._banks:
            if bank.id == bank_id:
                return bank
        return None

    def company_name(self, company_id: int) -> str | None:
        for bank in self._banks:
            if bank.company_id == company_id:
                return bank.company_name
        return None


def _optional_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def roster_from_dict(data: dict) -> BankRoster:
    """Build a roster from the parsed YAML structure.

    Raises:
        RosterError: If required keys are missing or have the wrong type
    """
    companies = data.get("companies") if isinstance(data, dict) else None
    if not isinstance(companies, list):
        raise RosterError("Roster must contain a 'companies' list")

    banks: list[BankAccount] = []
    for company in companies:
        if not isinstance(company, dict):
            raise RosterError(f"Invalid company entry {company!r}")
        try:
            company_id = int(company["id"])
            company_name = str(company["name"])
        except (KeyError, TypeError, ValueError) as e:
            raise RosterError(f"Invalid company entry {company!r}: {e}") from e

        for bank in company.get("banks") or []:
            try:
                banks.append(
                    BankAccount(
                        id=int(bank["id"]),
                        company_id=company_id,
                        company_name=company_name,
                        bank_name=str(bank.get("bank_name") or ""),
                        account_number=str(bank.get("account_number") or ""),
                        stored_password=_optional_str(bank.get("password")),
                        currency=_optional_str(bank.get("currency")),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise RosterError(
                    f"Invalid bank entry for company {company_id}: {bank!r}: {e}"
                ) from e

    return BankRoster(banks)


def load_roster(path: Path) -> BankRoster:
    """Load the roster from a YAML file.

    Raises:
        RosterError: If the file does not exist or cannot be parsed
    """
    if not path.exists():
        raise RosterError(f"Roster file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RosterError(f"Failed to parse roster {path}: {e}") from e

    roster = roster_from_dict(data)
    logger.info("Loaded roster with %d bank accounts from %s", len(roster), path)
    return roster
