"""
Multi-month replication.

A statement covering several months is stored once as a "range" record
under its primary month, then replicated as a "range_child" record into
every other month it covers. Children share the parent's document and
extracted data, point back at the parent, and start unvalidated.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Collection
from datetime import datetime, timezone
from typing import Any

from ..schemas.intake import DocumentItem
from ..schemas.periods import MonthYear
from ..state_store import StatementRecord, StatementStatus, StatementType, StateStore
from ..validation import ValidationResult

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def statement_document(item: DocumentItem, blob_key: str) -> dict[str, Any]:
    """Document reference stored on a statement record."""
    return {
        "statement_pdf": blob_key,
        "statement_excel": None,
        "document_size": item.size,
        "password": item.password,
        "upload_date": _now(),
        "file_name": item.filename,
    }


def validation_state(result: ValidationResult | None) -> dict[str, Any]:
    """Validation block for a record; None gives a fresh unvalidated state."""
    if result is None:
        return {
            "is_validated": False,
            "validation_date": None,
            "validated_by": None,
            "mismatches": [],
        }
    return {
        "is_validated": result.is_valid,
        "validation_date": _now(),
        "validated_by": "auto" if result.is_valid else None,
        "mismatches": list(result.mismatches),
    }


def statement_payload(
    item: DocumentItem,
    cycle_id: int | None,
    document: dict[str, Any],
    statement_type: StatementType,
    validation: ValidationResult | None,
    parent_statement_id: int | None = None,
) -> dict[str, Any]:
    """Build the upsert payload for one month's record of an item."""
    extraction = item.extraction
    extracted = extraction.extracted_data if extraction is not None and extraction.usable else None
    is_validated = validation is not None and validation.is_valid

    return {
        "company_id": item.bank.company_id,
        "cycle_id": cycle_id,
        "statement_type": statement_type,
        "parent_statement_id": parent_statement_id,
        "statement_document": document,
        "statement_extractions": extracted.to_dict() if extracted else None,
        "extraction_performed": extracted is not None,
        "extraction_timestamp": _now() if extracted is not None else None,
        "validation_status": validation_state(validation),
        "status": StatementStatus.VALIDATED if is_validated else StatementStatus.PENDING_VALIDATION,
        "has_soft_copy": True,
        "has_hard_copy": False,
    }


class MultiMonthReplicator:
    """Replicates range statements into the other months they cover."""

    def __init__(self, store: StateStore):
        self.store = store

    def replicate(
        self,
        parent: StatementRecord,
        item: DocumentItem,
        primary: MonthYear,
        selected_cycles: Collection[str] | None = None,
    ) -> list[StatementRecord]:
        """
        Create or update child records for every non-primary month.

        Args:
            parent: The persisted primary record
            item: The item the parent was built from (must have a period)
            primary: The parent's month
            selected_cycles: Cycle keys allowed to receive records
                (None allows every month)

        Returns:
            Child records written; months that failed are logged and skipped
        """
        if item.period is None or not item.period.is_multi_month:
            return []

        children: list[StatementRecord] = []
        for month in item.period.months():
            if month == primary:
                continue
            if selected_cycles is not None and month.key not in selected_cycles:
                logger.info("Skipping %s for %s: cycle not selected", month.key, item.filename)
                continue

            try:
                cycle = self.store.resolve_cycle(month.key)
                existing = self.store.find_statement(parent.bank_id, month.month, month.year)
                if existing is not None and existing.id == parent.id:
                    continue
                if existing is not None:
                    logger.info(
                        "Replacing %s record %d at %s with range child of %d",
                        existing.statement_type.value, existing.id, month.key, parent.id,
                    )
                payload = statement_payload(
                    item,
                    cycle_id=cycle.id,
                    document=parent.statement_document,
                    statement_type=StatementType.RANGE_CHILD,
                    validation=None,
                    parent_statement_id=parent.id,
                )
                child = self.store.upsert_statement(parent.bank_id, month.month, month.year, payload)
            except (sqlite3.Error, ValueError) as e:
                logger.error("Failed to replicate %s into %s: %s", item.filename, month.key, e)
                continue

            children.append(child)

        if children:
            logger.info(
                "Replicated statement %d into %d month(s): %s",
                parent.id, len(children), ", ".join(c.month_year for c in children),
            )
        return children
