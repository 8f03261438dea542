"""
Statement period parsing and month-range expansion.

Statement periods arrive as free text from the extraction service
("01/03/2024 - 31/07/2024", "January - July 2024", "Q1 2024", ...).
This module turns them into a normalized 1-based month range and expands
that range into the calendar months it covers.

Both the cycle resolver and the multi-month replicator use expand_range(),
so a statement is always filed into exactly the months it was planned for.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS = [
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
]

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

_MONTH = r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"
_RANGE_SEP = r"\s*(?:[-–—]|to|until)\s*"
_DATE = r"(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})"

# (a) DD/MM/YYYY - DD/MM/YYYY
DATE_RANGE_PATTERN = re.compile(_DATE + _RANGE_SEP + _DATE, re.IGNORECASE)
# (b) January - July 2024
MONTH_RANGE_PATTERN = re.compile(_MONTH + _RANGE_SEP + _MONTH + r"\s+(\d{4})\b", re.IGNORECASE)
# (c) January 2023 - February 2024
CROSS_YEAR_RANGE_PATTERN = re.compile(
    _MONTH + r"\s+(\d{4})" + _RANGE_SEP + _MONTH + r"\s+(\d{4})\b", re.IGNORECASE
)
# (d) 03/2024
MONTH_YEAR_NUMERIC_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/.\-](\d{4})(?!\d)")
# (e) March 2024
SINGLE_MONTH_PATTERN = re.compile(_MONTH + r"\s+(\d{4})\b", re.IGNORECASE)
# (f) Q1 2024 / Quarter 1 2024
QUARTER_PATTERN = re.compile(r"\bq(?:uarter)?\s*(\d)\s+(\d{4})\b", re.IGNORECASE)
# (g) candidates for generic date parsing
WORD_YEAR_PATTERN = re.compile(r"^\w+\s+\d{4}$")


@dataclass(frozen=True, order=True)
class MonthYear:
    """A single calendar month (1-based month)."""

    year: int
    month: int

    @property
    def key(self) -> str:
        """Canonical cycle key, e.g. "2024-03"."""
        return cycle_key(self.month, self.year)


@dataclass(frozen=True)
class StatementPeriod:
    """Normalized statement period, all fields 1-based."""

    start_month: int
    start_year: int
    end_month: int
    end_year: int

    @property
    def start(self) -> MonthYear:
        return MonthYear(year=self.start_year, month=self.start_month)

    @property
    def end(self) -> MonthYear:
        return MonthYear(year=self.end_year, month=self.end_month)

    @property
    def is_multi_month(self) -> bool:
        """True when the period covers more than one calendar month."""
        return self.start != self.end

    def months(self) -> list[MonthYear]:
        """All calendar months covered, in order."""
        return expand_range(self.start_month, self.start_year, self.end_month, self.end_year)

    def contains(self, month: int, year: int) -> bool:
        """Check whether the given month falls within the period."""
        return self.start <= MonthYear(year=year, month=month) <= self.end

    def to_dict(self) -> dict:
        return {
            "start_month": self.start_month,
            "start_year": self.start_year,
            "end_month": self.end_month,
            "end_year": self.end_year,
        }


def cycle_key(month: int, year: int) -> str:
    """Build the canonical "YYYY-MM" cycle key."""
    return f"{year:04d}-{month:02d}"


def parse_cycle_key(key: str) -> MonthYear:
    """Parse a "YYYY-MM" cycle key.

    Raises:
        ValueError: If the key is not a valid cycle key
    """
    match = re.fullmatch(r"(\d{4})-(\d{2})", key.strip())
    if not match:
        raise ValueError(f"Invalid cycle key: {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in cycle key: {key!r}")
    return MonthYear(year=year, month=month)


def month_from_name(name: str) -> int | None:
    """Return the 1-based month for a month name or abbreviation."""
    prefix = name.strip().lower()[:3]
    if prefix in MONTH_ABBREVIATIONS:
        return MONTH_ABBREVIATIONS.index(prefix) + 1
    return None


def _make_period(start_month: int, start_year: int, end_month: int, end_year: int) -> StatementPeriod:
    """Build a period, swapping the endpoints if the end precedes the start."""
    if (end_year, end_month) < (start_year, start_month):
        logger.debug(
            "Period end %d/%d precedes start %d/%d, swapping",
            end_month, end_year, start_month, start_year,
        )
        start_month, start_year, end_month, end_year = end_month, end_year, start_month, start_year
    return StatementPeriod(
        start_month=start_month,
        start_year=start_year,
        end_month=end_month,
        end_year=end_year,
    )


def _valid_month(month: int | None) -> bool:
    return month is not None and 1 <= month <= 12


def parse_period(period: str | None) -> StatementPeriod | None:
    """
    Parse a free-text statement period.

    Grammars are tried in a fixed priority order; the first one that
    matches wins. Returns None when nothing matches, never raises.

    Args:
        period: Period text as extracted from the statement

    Returns:
        StatementPeriod or None
    """
    if not period or not period.strip():
        return None

    text = re.sub(r"\s+", " ", period.strip())

    # (a) DD/MM/YYYY - DD/MM/YYYY
    match = DATE_RANGE_PATTERN.search(text)
    if match:
        start_month, start_year = int(match.group(2)), int(match.group(3))
        end_month, end_year = int(match.group(5)), int(match.group(6))
        if _valid_month(start_month) and _valid_month(end_month):
            return _make_period(start_month, start_year, end_month, end_year)

    # (b) January - July 2024
    match = MONTH_RANGE_PATTERN.search(text)
    if match:
        start_month = month_from_name(match.group(1))
        end_month = month_from_name(match.group(2))
        year = int(match.group(3))
        if _valid_month(start_month) and _valid_month(end_month):
            return _make_period(start_month, year, end_month, year)

    # (c) January 2023 - February 2024
    match = CROSS_YEAR_RANGE_PATTERN.search(text)
    if match:
        start_month = month_from_name(match.group(1))
        end_month = month_from_name(match.group(3))
        if _valid_month(start_month) and _valid_month(end_month):
            return _make_period(start_month, int(match.group(2)), end_month, int(match.group(4)))

    # (d) MM/YYYY
    match = MONTH_YEAR_NUMERIC_PATTERN.search(text)
    if match:
        month, year = int(match.group(1)), int(match.group(2))
        if _valid_month(month):
            return _make_period(month, year, month, year)

    # (e) March 2024
    match = SINGLE_MONTH_PATTERN.search(text)
    if match:
        month = month_from_name(match.group(1))
        year = int(match.group(2))
        if _valid_month(month):
            return _make_period(month, year, month, year)

    # (f) Q1 2024
    match = QUARTER_PATTERN.search(text)
    if match:
        quarter, year = int(match.group(1)), int(match.group(2))
        if 1 <= quarter <= 4:
            return _make_period((quarter - 1) * 3 + 1, year, quarter * 3, year)

    # (g) generic "<Month> <Year>" date parsing
    if WORD_YEAR_PATTERN.match(text):
        try:
            parsed = date_parser.parse(text, default=datetime(1900, 1, 1))
        except (ValueError, OverflowError):
            parsed = None
        if parsed is not None and parsed.year != 1900:
            return _make_period(parsed.month, parsed.year, parsed.month, parsed.year)

    # (h) last resort: a 4-digit year and any 1-12 number
    numbers = re.findall(r"\d+", text)
    if len(numbers) >= 2:
        year_token = next((n for n in numbers if len(n) == 4), None)
        month_token = next((n for n in numbers if len(n) <= 2 and 1 <= int(n) <= 12), None)
        if year_token and month_token:
            month, year = int(month_token), int(year_token)
            logger.debug("Last resort period parse of %r: %d/%d", period, month, year)
            return _make_period(month, year, month, year)

    logger.warning("Failed to parse statement period: %r", period)
    return None


def _as_int(value) -> int | None:
    """Coerce a numeric-looking value to int, None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def expand_range(start_month, start_year, end_month, end_year) -> list[MonthYear]:
    """
    Expand a month range into the ordered list of months it spans.

    Both endpoints are inclusive. A reversed range is swapped first, so
    valid inputs never produce an empty list. Missing or non-numeric
    inputs produce an empty list.

    Args:
        start_month: 1-based start month
        start_year: Start year
        end_month: 1-based end month
        end_year: End year

    Returns:
        List of MonthYear, oldest first
    """
    values = [_as_int(v) for v in (start_month, start_year, end_month, end_year)]
    if any(v is None for v in values):
        logger.warning(
            "Invalid inputs to expand_range: %r",
            (start_month, start_year, end_month, end_year),
        )
        return []

    s_month, s_year, e_month, e_year = values
    if not (_valid_month(s_month) and _valid_month(e_month)) or s_year <= 0 or e_year <= 0:
        logger.warning("Out of range inputs to expand_range: %r", values)
        return []

    if (e_year, e_month) < (s_year, s_month):
        s_month, s_year, e_month, e_year = e_month, e_year, s_month, s_year

    months: list[MonthYear] = []
    month, year = s_month, s_year
    while (year, month) <= (e_year, e_month):
        months.append(MonthYear(year=year, month=month))
        month += 1
        if month > 12:
            month = 1
            year += 1

    return months


def is_period_contained(period: str | None, month: int, year: int) -> bool:
    """
    Check whether a period string covers the given month and year.

    Two checks are tried: the month's name appearing next to the year
    ("March 2024", "Mar 2024"), then parsed range containment.
    """
    if not period or not _valid_month(month):
        return False

    month_pattern = re.compile(
        rf"\b{MONTH_ABBREVIATIONS[month - 1]}[a-z]*\.?\s+{year}\b", re.IGNORECASE
    )
    if month_pattern.search(period):
        return True

    parsed = parse_period(period)
    if parsed is None:
        return False
    return parsed.contains(month, year)
