"""Tests for the bank matcher."""

import pytest

from statement_intake.matching import BankMatcher, ConfidenceTier, MatchResult
from statement_intake.roster import BankAccount, BankRoster
from statement_intake.schemas.filename_hints import FileHints


@pytest.fixture
def matcher(roster):
    return BankMatcher(roster)


class TestMatchPriority:
    """Signals are applied in strict priority order."""

    def test_exact_account_number(self, matcher):
        result = matcher.match("statement_1234567890.pdf")
        assert result.bank.id == 10
        assert result.tier == ConfidenceTier.HIGH
        assert result.confidence == 1.0

    def test_exact_match_ignores_separators(self, matcher):
        """Roster "01-234-5678" matches a filename "012345678"."""
        result = matcher.match("012345678.pdf")
        assert result.bank.id == 20
        assert result.tier == ConfidenceTier.HIGH

    def test_partial_account_number(self, matcher):
        result = matcher.match("acct_34567890.pdf")
        assert result.bank.id == 10
        assert result.tier == ConfidenceTier.MEDIUM_HIGH
        assert result.confidence == 0.9

    def test_account_beats_bank_name(self, matcher):
        """An Equity filename carrying a KCB account number matches the KCB account."""
        result = matcher.match("equity_1234567890.pdf")
        assert result.bank.id == 10
        assert result.tier == ConfidenceTier.HIGH

    def test_bank_name(self, matcher):
        result = matcher.match("Equity_March.pdf")
        assert result.bank.id == 11
        assert result.tier == ConfidenceTier.MEDIUM
        assert result.confidence == 0.7

    def test_company_name_in_filename(self, matcher):
        result = matcher.match("beta traders march.pdf")
        assert result.bank.company_id == 2
        assert result.tier == ConfidenceTier.LOW
        assert result.confidence == 0.5

    def test_no_match(self, matcher):
        result = matcher.match("scan0001.pdf")
        assert result.bank is None
        assert not result.is_matched
        assert result.tier == ConfidenceTier.NONE
        assert result.confidence == 0.0


class TestCompanyScope:
    """Company mode restricts candidates; auto-detect searches everything."""

    def test_company_mode_filters_candidates(self, matcher):
        """KCB exists for both companies; company mode picks that company's account."""
        result = matcher.match("KCB_statement.pdf", company_id=2)
        assert result.bank.id == 21

    def test_company_mode_rejects_other_companies_accounts(self, matcher):
        result = matcher.match("statement_1234567890.pdf", company_id=2)
        assert result.bank is None or result.bank.company_id == 2

    def test_auto_detect_uses_whole_roster(self, matcher):
        result = matcher.match("stanbic_012345678.pdf", company_id=None)
        assert result.bank.id == 20

    def test_unknown_company_has_no_candidates(self, matcher):
        result = matcher.match("KCB_1234567890.pdf", company_id=99)
        assert result.tier == ConfidenceTier.NONE


class TestEdgeCases:
    """Empty roster values and supplied hints."""

    def test_empty_account_numbers_never_match(self):
        roster = BankRoster(
            [BankAccount(id=1, company_id=1, company_name="X Co", bank_name="", account_number="")]
        )
        result = BankMatcher(roster).match("1234567.pdf")
        assert result.bank is None

    def test_empty_roster(self):
        result = BankMatcher(BankRoster([])).match("KCB_1234567890.pdf")
        assert result.tier == ConfidenceTier.NONE

    def test_precomputed_hints_are_used(self, matcher):
        hints = FileHints(account_number="0987654321")
        result = matcher.match("whatever.pdf", hints=hints)
        assert result.bank.id == 11

    def test_manual_match_overrides(self, matcher, roster):
        bank = roster.get(21)
        result = matcher.manual_match(bank)
        assert result.bank is bank
        assert result.tier == ConfidenceTier.MANUAL
        assert result.confidence == 1.0

    def test_to_dict(self, matcher):
        data = matcher.match("statement_1234567890.pdf").to_dict()
        assert data["bank_id"] == 10
        assert data["company_id"] == 1
        assert data["tier"] == "high"
        assert data["reasons"]

    def test_match_result_defaults(self):
        result = MatchResult(bank=None, tier=ConfidenceTier.NONE)
        assert result.reasons == []
