"""
Document blob storage.

Statement files are stored write-once under a key derived from the
company, bank and period. A key that already holds the same bytes is
reused; a key holding different bytes is never overwritten, the new file
is stored beside it under a content-suffixed key instead.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when a blob cannot be stored or read."""

    pass


def _safe_segment(value: str) -> str:
    """Make a value usable as a single path segment."""
    cleaned = re.sub(r"[^\w\-. &]", "_", str(value)).strip(" .")
    return cleaned or "unknown"


def statement_blob_key(
    company_id: int,
    company_name: str,
    bank_id: int,
    month: int,
    year: int,
    extension: str = "pdf",
) -> str:
    """Build the storage key for a statement document.

    Layout: statement_documents/{year}/{month}/{company}/
    bank_statement_{company_id}_{bank_id}_{year}_{month}.{ext}
    """
    filename = f"bank_statement_{company_id}_{bank_id}_{year}_{month}.{extension}"
    return str(
        PurePosixPath("statement_documents")
        / str(year)
        / str(month)
        / _safe_segment(company_name)
        / filename
    )


class BlobStore:
    """Interface for document blob storage."""

    def put(self, key: str, data: bytes) -> str:
        """Store data; returns the key actually written."""
        raise NotImplementedError(f"{self.__class__.__name__}.put() must be implemented")

    def read(self, key: str) -> bytes:
        raise NotImplementedError(f"{self.__class__.__name__}.read() must be implemented")

    def exists(self, key: str) -> bool:
        raise NotImplementedError(f"{self.__class__.__name__}.exists() must be implemented")


class LocalBlobStore(BlobStore):
    """Write-once blob store on the local filesystem."""

    def __init__(self, root: Path | str):
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BlobStoreError(f"Cannot create blob root {self.root}: {e}") from e

    def _path(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self.root.joinpath(*relative.parts)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Cannot read blob {key}: {e}") from e

    def put(self, key: str, data: bytes) -> str:
        """
        Store data under key without ever overwriting.

        Returns:
            The key the data is stored under: key itself, or a
            content-suffixed variant when key already holds other bytes.

        Raises:
            BlobStoreError: If the file cannot be written
        """
        path = self._path(key)
        if path.is_file():
            if path.read_bytes() == data:
                logger.debug("Blob %s already stored", key)
                return key
            digest = hashlib.sha256(data).hexdigest()[:12]
            key = str(PurePosixPath(key).with_name(f"{path.stem}_{digest}{path.suffix}"))
            path = self._path(key)
            if path.is_file():
                return key

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "xb")
        except OSError as e:
            raise BlobStoreError(f"Cannot write blob {key}: {e}") from e

        try:
            with handle:
                handle.write(data)
        except OSError as e:
            # never leave a partial blob at the key
            path.unlink(missing_ok=True)
            raise BlobStoreError(f"Cannot write blob {key}: {e}") from e

        logger.info("Stored blob %s (%d bytes)", key, len(data))
        return key
