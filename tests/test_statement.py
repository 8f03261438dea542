"""Tests for extracted statement normalization."""

from decimal import Decimal

import pytest

from fixtures import extraction_payload
from statement_intake.schemas import ExtractedStatement, MonthlyBalance, parse_currency_amount


class TestParseCurrencyAmount:
    """Formatted amounts from the extraction service."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("KES 1,234.50", Decimal("1234.50")),
            ("Ksh. 1,000", Decimal("1000")),
            ("Kshs. 1,234.50", Decimal("1234.50")),
            ("K.SH 750", Decimal("750")),
            ("Sh. 20", Decimal("20")),
            ("1,000 Kenya Shillings", Decimal("1000")),
            ("1,000.00 KES", Decimal("1000.00")),
            ("$12.30", Decimal("12.30")),
            ("-300", Decimal("-300")),
            ("+42.5", Decimal("42.5")),
            ("(1,234.50)", Decimal("-1234.50")),
            ("KES (500.00)", Decimal("-500.00")),
            ("(Ksh. 1,000)", Decimal("-1000")),
            (".50", Decimal("0.50")),
        ],
    )
    def test_formatted_strings(self, raw, expected):
        assert parse_currency_amount(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, True, "", "   ", "-", ".", "N/A", "Ksh.", "1,000 DR", "1.2.3", "12-34", "(100"],
    )
    def test_unparseable(self, raw):
        assert parse_currency_amount(raw) is None

    def test_numbers(self):
        assert parse_currency_amount(1000) == Decimal("1000")
        assert parse_currency_amount(2500.5) == Decimal("2500.5")
        assert parse_currency_amount(Decimal("3.10")) == Decimal("3.10")
        assert parse_currency_amount(float("nan")) is None

    def test_result_is_decimal(self):
        assert isinstance(parse_currency_amount("KES 1,000.00"), Decimal)


class TestExtractedStatement:
    """Normalizing a raw payload and serializing it back."""

    def test_from_dict(self):
        data = extraction_payload(currency="Kenya Shillings")
        data["monthly_balances"] = [
            {"month": 3, "year": 2024, "opening_balance": "Ksh. 1,000", "closing_balance": "(20.00)"},
            {"month": 13, "year": 2024},
            {"year": 2024},
            "not a mapping",
        ]

        statement = ExtractedStatement.from_dict(data)

        assert statement.currency == "KES"
        assert statement.opening_balance == Decimal("1000.00")
        assert statement.closing_balance == Decimal("2500.50")
        assert len(statement.monthly_balances) == 1
        balance = statement.monthly_balances[0]
        assert balance.opening_balance == Decimal("1000")
        assert balance.closing_balance == Decimal("-20.00")

    def test_to_dict_serializes_amounts_as_strings(self):
        statement = ExtractedStatement.from_dict(extraction_payload())

        data = statement.to_dict()

        assert data["opening_balance"] == "1000.00"
        assert data["closing_balance"] == "2500.50"

    def test_to_dict_round_trips_amounts(self):
        statement = ExtractedStatement(
            opening_balance=Decimal("0.10"),
            monthly_balances=[MonthlyBalance(month=1, year=2024, closing_balance=Decimal("-5.25"))],
        )

        restored = ExtractedStatement.from_dict(statement.to_dict())

        assert restored.opening_balance == Decimal("0.10")
        assert restored.closing_balance is None
        assert restored.monthly_balances[0].closing_balance == Decimal("-5.25")

    def test_empty_payload(self):
        statement = ExtractedStatement.from_dict(None)

        assert statement.bank_name is None
        assert statement.opening_balance is None
        assert statement.monthly_balances == []
