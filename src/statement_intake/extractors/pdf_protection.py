"""
PDF password detection and verification (PyPDF2).
"""

import io
import logging
from typing import Optional

from PyPDF2 import PdfReader, errors as pypdf_errors

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


def looks_like_pdf(payload: bytes) -> bool:
    """Check for the PDF header within the first KiB."""
    return PDF_MAGIC in payload[:1024]


class PdfPasswordChecker:
    """
    Answers two questions about a payload: is it password protected,
    and does a given password open it.

    Payloads that are not PDFs are never protected. PDFs that PyPDF2
    cannot open at all are treated as protected, so they go through the
    password flow instead of failing later at extraction.
    """

    def _reader(self, payload: bytes) -> PdfReader:
        return PdfReader(io.BytesIO(payload))

    def is_protected(self, payload: bytes) -> bool:
        if not looks_like_pdf(payload):
            return False
        try:
            reader = self._reader(payload)
        except (pypdf_errors.PyPdfError, ValueError, KeyError, TypeError) as e:
            logger.debug("PDF could not be opened, treating as protected: %s", e)
            return True
        return bool(reader.is_encrypted)

    def verify(self, payload: bytes, password: Optional[str]) -> bool:
        """Return True if password opens the document (or none is needed)."""
        if not looks_like_pdf(payload):
            return True
        if password is None:
            return not self.is_protected(payload)

        try:
            reader = self._reader(payload)
            if not reader.is_encrypted:
                return True
            result = reader.decrypt(password)
        except (pypdf_errors.PyPdfError, NotImplementedError, ValueError, KeyError, TypeError) as e:
            logger.debug("Password attempt failed: %s", e)
            return False

        return bool(result)
