"""
Human-in-the-loop confirmation.

Provides:
- Reviewer interface for password, cycle, bank and validation prompts
- ConsoleReviewer (terminal) and AutoReviewer (preset answers)
"""

from .workflow import AutoReviewer, ConsoleReviewer, PasswordRequest, ReviewDecision, Reviewer

__all__ = [
    "AutoReviewer",
    "ConsoleReviewer",
    "PasswordRequest",
    "ReviewDecision",
    "Reviewer",
]
