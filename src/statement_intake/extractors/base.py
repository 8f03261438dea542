"""
Base extractor interface and common types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..schemas.statement import ExtractedStatement


@dataclass
class ExtractionOutcome:
    """Result from an extraction attempt."""

    success: bool
    extracted_data: Optional[ExtractedStatement] = None
    requires_password: bool = False
    message: str = ""

    # Raw service payload (debug info)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def usable(self) -> bool:
        """True when the outcome carries extracted fields worth persisting."""
        return self.success and not self.requires_password and self.extracted_data is not None

    @classmethod
    def failed(cls, message: str) -> "ExtractionOutcome":
        return cls(success=False, message=message)


class BaseExtractor(ABC):
    """
    Base class for statement extractors.

    An extractor receives the statement file together with the month the
    statement is being filed under and an optional password, and returns
    structured fields or a "password required" signal. Extractors may be
    re-invoked with a different password.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @abstractmethod
    def extract(
        self,
        blob: bytes,
        filename: str,
        month: int,
        year: int,
        password: Optional[str] = None,
    ) -> ExtractionOutcome:
        """
        Extract statement fields.

        Args:
            blob: Statement file bytes
            filename: Original file name
            month: Target cycle month (1-12)
            year: Target cycle year
            password: Password for protected documents

        Returns:
            ExtractionOutcome
        """
        pass
