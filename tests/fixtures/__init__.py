"""
Test doubles and sample data for the intake pipeline.

- FakeExtractor: scripted extraction service
- FakePasswordChecker: payload -> password table instead of real PDFs
- sample roster and extraction payloads
"""

from collections.abc import Mapping

from statement_intake.extractors import BaseExtractor, ExtractionError, ExtractionOutcome
from statement_intake.roster import roster_from_dict
from statement_intake.schemas.statement import ExtractedStatement

ROSTER_DATA = {
    "companies": [
        {
            "id": 1,
            "name": "Acme Ltd",
            "banks": [
                {
                    "id": 10,
                    "bank_name": "KCB",
                    "account_number": "1234567890",
                    "currency": "KES",
                    "password": "4321",
                },
                {
                    "id": 11,
                    "bank_name": "Equity",
                    "account_number": "0987654321",
                    "currency": "KES",
                },
            ],
        },
        {
            "id": 2,
            "name": "Beta Traders",
            "banks": [
                {
                    "id": 20,
                    "bank_name": "Stanbic",
                    "account_number": "01-234-5678",
                    "currency": "USD",
                    "password": "9999",
                },
                {
                    "id": 21,
                    "bank_name": "KCB",
                    "account_number": "5555566666",
                    "currency": "KES",
                    "password": "2468",
                },
            ],
        },
    ]
}


def sample_roster():
    return roster_from_dict(ROSTER_DATA)


def extraction_payload(
    period: str = "01/03/2024 - 31/03/2024",
    company: str = "Acme Ltd",
    bank: str = "KCB Bank",
    account: str = "1234567890",
    currency: str = "KES",
    **extra,
) -> dict:
    """Raw extraction-service data for a statement."""
    payload = {
        "bank_name": bank,
        "company_name": company,
        "account_number": account,
        "currency": currency,
        "statement_period": period,
        "opening_balance": "KES 1,000.00",
        "closing_balance": "KES 2,500.50",
        "monthly_balances": [],
    }
    payload.update(extra)
    return payload


def success(data: dict) -> ExtractionOutcome:
    return ExtractionOutcome(success=True, extracted_data=ExtractedStatement.from_dict(data), raw=data)


class FakeExtractor(BaseExtractor):
    """Returns scripted outcomes per filename and records every call."""

    def __init__(self, outcomes: Mapping[str, object] | None = None):
        self.outcomes = dict(outcomes or {})
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return "fake"

    def extract(self, blob, filename, month, year, password=None):
        self.calls.append(
            {"filename": filename, "month": month, "year": year, "password": password}
        )
        outcome = self.outcomes.get(filename)
        if outcome is None:
            return ExtractionOutcome.failed("no scripted outcome")
        if isinstance(outcome, ExtractionError):
            raise outcome
        if isinstance(outcome, dict):
            return success(outcome)
        return outcome


class FakePasswordChecker:
    """Payloads listed in `passwords` are protected by that password."""

    def __init__(self, passwords: Mapping[bytes, str] | None = None):
        self.passwords = dict(passwords or {})
        self.attempts: list[tuple[bytes, str | None]] = []

    def is_protected(self, payload: bytes) -> bool:
        return payload in self.passwords

    def verify(self, payload: bytes, password: str | None) -> bool:
        self.attempts.append((payload, password))
        if payload not in self.passwords:
            return True
        return password == self.passwords[payload]
