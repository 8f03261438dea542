"""
Extracted statement data.

The extraction service answers with loosely-typed JSON: balances as
formatted strings ("KES 1,234.50"), currencies spelled out
("Kenya Shillings"), periods as free text. ExtractedStatement.from_dict()
normalizes that payload once so every later stage works with clean values.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

# Spelling -> ISO code, keys normalized with normalize_currency()'s rules
CURRENCY_ALIASES: dict[str, str] = {
    "EURO": "EUR",
    "EUROS": "EUR",
    "USDOLLAR": "USD",
    "USDOLLARS": "USD",
    "DOLLAR": "USD",
    "DOLLARS": "USD",
    "POUND": "GBP",
    "POUNDS": "GBP",
    "STERLING": "GBP",
    "POUNDSTERLING": "GBP",
    "KENYASHILLING": "KES",
    "KENYASHILLINGS": "KES",
    "KENYANSHILLING": "KES",
    "KENYANSHILLINGS": "KES",
    "KSH": "KES",
    "KSHS": "KES",
    "SH": "KES",
    "SHS": "KES",
}


def normalize_currency(value: str | None) -> str | None:
    """
    Normalize a currency spelling to its ISO code.

    "Kshs", "K.SH", "Kenya Shillings" -> "KES"; unknown spellings come
    back uppercased with separators removed. None and blank input give None.
    """
    if value is None:
        return None
    key = re.sub(r"[\s.\-_]", "", str(value)).upper()
    if not key:
        return None
    return CURRENCY_ALIASES.get(key, key)


# Letter runs such as "Ksh.", "K.SH" or "Kenya", with their trailing dots
_CURRENCY_WORD = re.compile(r"[A-Za-z][A-Za-z.]*")
_CURRENCY_SYMBOL = re.compile(r"[$€£]")
_AMOUNT_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")


def _is_currency_token(text: str) -> bool:
    code = normalize_currency(text)
    if code is None:
        return False
    return code in CURRENCY_ALIASES.values() or (len(code) == 3 and code.isalpha())


def parse_currency_amount(value: Any) -> Decimal | None:
    """
    Parse a formatted amount into a Decimal.

    Accepts a currency prefix or suffix ("KES 1,234.50", "Ksh. 1,000",
    "1,000 Kenya Shillings"), thousands separators and a leading sign.
    An amount in parentheses ("(1,234.50)") is negative. Any other text
    next to the number makes the amount unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        amount = Decimal(str(value))
        return amount if amount.is_finite() else None

    text = str(value).strip()
    words = "".join(_CURRENCY_WORD.findall(text))
    if words and not _is_currency_token(words):
        logger.debug("Unparseable amount: %r", value)
        return None

    number = _CURRENCY_SYMBOL.sub("", _CURRENCY_WORD.sub("", text))
    number = re.sub(r"[\s,]", "", number)
    negative = number.startswith("(") and number.endswith(")")
    if negative:
        number = number[1:-1]
    if not _AMOUNT_PATTERN.match(number):
        if number:
            logger.debug("Unparseable amount: %r", value)
        return None

    try:
        amount = Decimal(number)
    except (InvalidOperation, ValueError):
        logger.debug("Unparseable amount: %r", value)
        return None
    return -amount if negative else amount


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class MonthlyBalance:
    """Opening/closing balance for one month inside a statement."""

    month: int
    year: int
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    statement_page: int | None = None
    opening_date: str | None = None
    closing_date: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> MonthlyBalance | None:
        """Build from service JSON; entries without a usable month/year are dropped."""
        try:
            month = int(data.get("month"))
            year = int(data.get("year"))
        except (TypeError, ValueError):
            return None
        if not 1 <= month <= 12:
            return None

        page = data.get("statement_page")
        try:
            page = int(page) if page is not None else None
        except (TypeError, ValueError):
            page = None

        return cls(
            month=month,
            year=year,
            opening_balance=parse_currency_amount(data.get("opening_balance")),
            closing_balance=parse_currency_amount(data.get("closing_balance")),
            statement_page=page,
            opening_date=_as_text(data.get("opening_date")),
            closing_date=_as_text(data.get("closing_date")),
        )

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "opening_balance": _money(self.opening_balance),
            "closing_balance": _money(self.closing_balance),
            "statement_page": self.statement_page,
            "opening_date": self.opening_date,
            "closing_date": self.closing_date,
        }


@dataclass
class ExtractedStatement:
    """Normalized fields extracted from a bank statement."""

    bank_name: str | None = None
    company_name: str | None = None
    account_number: str | None = None
    currency: str | None = None
    statement_period: str | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    monthly_balances: list[MonthlyBalance] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> ExtractedStatement:
        """Normalize a raw extraction payload."""
        data = data or {}
        balances = []
        for entry in data.get("monthly_balances") or []:
            if isinstance(entry, dict):
                balance = MonthlyBalance.from_dict(entry)
                if balance is not None:
                    balances.append(balance)

        return cls(
            bank_name=_as_text(data.get("bank_name")),
            company_name=_as_text(data.get("company_name")),
            account_number=_as_text(data.get("account_number")),
            currency=normalize_currency(_as_text(data.get("currency"))),
            statement_period=_as_text(data.get("statement_period")),
            opening_balance=parse_currency_amount(data.get("opening_balance")),
            closing_balance=parse_currency_amount(data.get("closing_balance")),
            monthly_balances=balances,
        )

    def to_dict(self) -> dict:
        return {
            "bank_name": self.bank_name,
            "company_name": self.company_name,
            "account_number": self.account_number,
            "currency": self.currency,
            "statement_period": self.statement_period,
            "opening_balance": _money(self.opening_balance),
            "closing_balance": _money(self.closing_balance),
            "monthly_balances": [b.to_dict() for b in self.monthly_balances],
        }
