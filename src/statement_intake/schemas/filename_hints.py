"""
Filename intelligence.

Bank statements are usually uploaded with filenames that leak useful facts:
the account number, the bank, sometimes even the PDF password
("KCB_1234567890_march_pwd1234.pdf"). detect_file_hints() pulls those out.

All hints are independent and optional. Nothing here touches I/O.

Known weakness: when no explicit password keyword is present, ANY bare
4-digit token is reported as a password candidate. Years and account
fragments produce false positives. Candidates are always verified against
the document before being applied, so a wrong guess only costs one attempt.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Canonical bank name -> aliases seen in filenames (lowercase)
KNOWN_BANKS: dict[str, tuple[str, ...]] = {
    "KCB": ("kcb",),
    "Equity": ("equity",),
    "Stanbic": ("stanbic",),
    "Standard Chartered": ("standard chartered", "stanchart", "scb"),
    "Absa": ("absa", "barclays"),
    "Co-operative": ("cooperative", "co-operative", "co op", "coop"),
    "NCBA": ("ncba", "cba"),
    "Diamond Trust": ("diamond trust", "dtb"),
    "Family": ("family",),
    "I&M": ("i&m", "im bank"),
    "Gulf African": ("gulf",),
    "UOB": ("uob",),
    "Prime": ("prime",),
    "Bank of Africa": ("bank of africa", "boa"),
    "Credit Bank": ("credit bank",),
    "Ecobank": ("ecobank", "eco bank"),
}

ACCOUNT_DIGITS_PATTERN = re.compile(r"\d{5,}")
ACCOUNT_GROUPED_PATTERN = re.compile(r"(?<!\d)\d{2,}(?:[-\s]\d{2,}){2,}(?!\d)")

EXPLICIT_PASSWORD_PATTERN = re.compile(
    r"(?<![a-z])(?:pass(?:word)?|pwd|pw|p)(?:\s*[:=]\s*|[\s_\-]*)(\d{4,})(?!\d)",
    re.IGNORECASE,
)
BARE_PASSWORD_PATTERN = re.compile(r"(?<![0-9A-Za-z])\d{4}(?![0-9A-Za-z])")


@dataclass(frozen=True)
class FileHints:
    """Hints recovered from a filename. Every field may be None."""

    password: str | None = None
    account_number: str | None = None
    bank_name: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.password or self.account_number or self.bank_name)

    def to_dict(self) -> dict:
        return {
            "password": self.password,
            "account_number": self.account_number,
            "bank_name": self.bank_name,
        }


def _strip_extension(filename: str) -> str:
    return re.sub(r"\.[A-Za-z0-9]{2,5}$", "", filename)


def _normalize(filename: str) -> str:
    """Lowercase and turn common filename separators into spaces."""
    return re.sub(r"[_.]+", " ", _strip_extension(filename)).lower()


def detect_account_number(filename: str) -> str | None:
    """
    Find the most likely account number in a filename.

    Considers the longest run of 5+ digits and grouped numbers such as
    "01-234-5678" or "12 34 56". When both exist, the candidate carrying
    more digits wins (ties go to the plain run).
    """
    stem = _strip_extension(filename)

    runs = ACCOUNT_DIGITS_PATTERN.findall(stem)
    plain = max(runs, key=len) if runs else None

    grouped_matches = ACCOUNT_GROUPED_PATTERN.findall(stem)
    grouped = None
    if grouped_matches:
        grouped = max(grouped_matches, key=lambda g: len(re.sub(r"\D", "", g)))

    if plain and grouped:
        grouped_digits = len(re.sub(r"\D", "", grouped))
        return grouped if grouped_digits > len(plain) else plain
    return plain or grouped


def detect_bank_name(filename: str) -> str | None:
    """Return the canonical name of the first known bank mentioned."""
    text = _normalize(filename).replace("-", " ")
    best: tuple[int, str] | None = None
    for canonical, aliases in KNOWN_BANKS.items():
        for alias in aliases:
            pattern = rf"(?<![a-z]){re.escape(alias.replace('-', ' '))}(?![a-z])"
            match = re.search(pattern, text)
            if match and (best is None or match.start() < best[0]):
                best = (match.start(), canonical)
    return best[1] if best else None


def detect_password(filename: str) -> str | None:
    """
    Find a password candidate in a filename.

    Explicit keyword forms ("pass:1234", "password=5678", "pwd_4321") win;
    otherwise the first bare 4-digit token is returned.
    """
    stem = _strip_extension(filename)

    match = EXPLICIT_PASSWORD_PATTERN.search(stem)
    if match:
        return match.group(1)

    match = BARE_PASSWORD_PATTERN.search(stem)
    if match:
        return match.group(0)
    return None


def detect_file_hints(filename: str) -> FileHints:
    """
    Extract password, account number and bank name hints from a filename.

    Args:
        filename: Uploaded file name (path components are ignored)

    Returns:
        FileHints with each field set or None
    """
    if not filename:
        return FileHints()

    name = re.split(r"[\\/]", filename)[-1]
    return FileHints(
        password=detect_password(name),
        account_number=detect_account_number(name),
        bank_name=detect_bank_name(name),
    )
