"""
Statement extractors.

Provides:
- ExtractionClient: HTTP client for the extraction service
- CachingExtractor: TTL cache of successful extractions
- PdfPasswordChecker: PDF protection detection / password verification
- Base classes for custom extractors
"""

from .base import BaseExtractor, ExtractionOutcome
from .cache import CachingExtractor
from .client import (
    ExtractionAPIError,
    ExtractionClient,
    ExtractionConnectionError,
    ExtractionError,
)
from .pdf_protection import PdfPasswordChecker, looks_like_pdf

__all__ = [
    "BaseExtractor",
    "ExtractionOutcome",
    "CachingExtractor",
    "ExtractionClient",
    "ExtractionError",
    "ExtractionAPIError",
    "ExtractionConnectionError",
    "PdfPasswordChecker",
    "looks_like_pdf",
]
