"""Bank matcher for pairing statement files with roster bank accounts."""

from statement_intake.matching.engine import BankMatcher, ConfidenceTier, MatchResult

__all__ = ["BankMatcher", "ConfidenceTier", "MatchResult"]
