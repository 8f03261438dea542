"""Advisory validation of extracted statement data."""

from .validator import (
    CURRENCY_ALIASES,
    ValidationResult,
    normalize_currency,
    validate_extraction,
)

__all__ = ["CURRENCY_ALIASES", "ValidationResult", "normalize_currency", "validate_extraction"]
