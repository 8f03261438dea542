"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from fixtures import FakeExtractor, FakePasswordChecker, sample_roster
from statement_intake.review import AutoReviewer
from statement_intake.services import IntakeSession
from statement_intake.state_store import StateStore
from statement_intake.storage import LocalBlobStore

SAMPLE_ROSTER_YAML = """
companies:
  - id: 1
    name: "Acme Ltd"
    banks:
      - id: 10
        bank_name: "KCB"
        account_number: "1234567890"
        currency: "KES"
        password: "4321"
      - id: 11
        bank_name: "Equity"
        account_number: "0987654321"
        currency: "KES"
  - id: 2
    name: "Beta Traders"
    banks:
      - id: 20
        bank_name: "Stanbic"
        account_number: "01-234-5678"
        currency: "USD"
        password: "9999"
"""


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh state store."""
    return StateStore(temp_db)


@pytest.fixture
def roster():
    """Two companies, four bank accounts."""
    return sample_roster()


@pytest.fixture
def roster_file(tmp_path) -> Path:
    """Roster YAML on disk."""
    path = tmp_path / "roster.yaml"
    path.write_text(SAMPLE_ROSTER_YAML)
    return path


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def checker() -> FakePasswordChecker:
    return FakePasswordChecker()


@pytest.fixture
def reviewer() -> AutoReviewer:
    return AutoReviewer()


@pytest.fixture
def make_session(roster, store, blob_store, extractor, checker, reviewer):
    """Factory for intake sessions targeting a month (default 03/2024)."""

    def _make(month: int = 3, year: int = 2024, company_id=None, **overrides) -> IntakeSession:
        kwargs = dict(
            roster=roster,
            store=store,
            blob_store=blob_store,
            extractor=extractor,
            reviewer=reviewer,
            password_checker=checker,
            target_month=month,
            target_year=year,
            company_id=company_id,
        )
        kwargs.update(overrides)
        return IntakeSession(**kwargs)

    return _make
