"""Write-once storage for statement documents."""

from .blob_store import BlobStore, BlobStoreError, LocalBlobStore, statement_blob_key

__all__ = ["BlobStore", "BlobStoreError", "LocalBlobStore", "statement_blob_key"]
