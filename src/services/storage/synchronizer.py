"""
Persistence Synchronizer

Keeps the durable store in step with the in-memory invoice collection.

CONTRACT:
- load() runs once at startup and never raises. Anything unreadable
  yields an empty collection and an audit event.
- save() writes the whole collection on every committed change and
  never raises. A failed write is logged and reported as False so the
  session can carry on with its in-memory state.

The written value is a versioned envelope:

    {"schemaVersion": 1, "invoices": [...]}
"""

import json
from typing import Optional

import structlog

from src.audit import AuditLogger
from src.models.audit import AuditEventBuilder
from src.models.invoice import Invoice
from src.services.storage.interface import KeyValueStoreInterface, StorageError
from src.validation import SCHEMA_VERSION, InvoiceRecordValidator

logger = structlog.get_logger(__name__)

DEFAULT_KEY = "invoices"


def serialize_collection(invoices: list[Invoice]) -> str:
    """Serialize a full collection in the persisted envelope layout."""
    return json.dumps({
        "schemaVersion": SCHEMA_VERSION,
        "invoices": [invoice.to_record() for invoice in invoices],
    })


class InvoiceSynchronizer:
    """
    Reads and writes the invoice collection under one well-known key.

    Usage:
        sync = InvoiceSynchronizer(store)
        invoices = await sync.load()
        await sync.save(invoices)
    """

    def __init__(
        self,
        store: KeyValueStoreInterface,
        key: str = DEFAULT_KEY,
        validator: Optional[InvoiceRecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self.key = key
        self._validator = validator or InvoiceRecordValidator()
        self._audit_logger = audit_logger
        self.last_save_ok: Optional[bool] = None

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def load(self) -> list[Invoice]:
        """
        Read the stored collection.

        Returns:
            The valid invoices in stored order. An absent key, unreadable
            store or corrupt payload all give [].
        """
        try:
            raw = await self._store.get(self.key)
        except StorageError as e:
            logger.error("load_failed", key=self.key, error=str(e))
            await self._audit(AuditEventBuilder.storage_load_failed(self.key, str(e)))
            return []

        if raw is None:
            logger.info("load_empty", key=self.key)
            return []

        try:
            result = self._validator.validate(raw)
        except Exception as e:
            logger.exception("load_validation_crashed", key=self.key)
            await self._audit(
                AuditEventBuilder.storage_load_failed(self.key, f"{type(e).__name__}: {e}")
            )
            return []

        if not result.is_valid:
            summary = self._validator.get_summary(result)
            logger.error("load_corrupt", key=self.key, reason=summary)
            await self._audit(AuditEventBuilder.storage_load_failed(self.key, summary))
            return []

        rejected: dict[int, list[dict]] = {}
        for issue in result.issues:
            if issue.severity == "error" and issue.record_index is not None:
                rejected.setdefault(issue.record_index, []).append(issue.model_dump())
        for record_index, issues in rejected.items():
            await self._audit(
                AuditEventBuilder.storage_record_rejected(self.key, record_index, issues)
            )

        logger.info(
            "load_complete",
            key=self.key,
            schema_version=result.schema_version,
            count=len(result.invoices),
            rejected=result.rejected_count,
        )
        await self._audit(
            AuditEventBuilder.storage_loaded(
                len(result.invoices), result.rejected_count, self.key
            )
        )
        return result.invoices

    async def save(self, invoices: list[Invoice]) -> bool:
        """
        Overwrite the stored collection with the given snapshot.

        Returns:
            True if the write succeeded, False otherwise
        """
        try:
            await self._store.set(self.key, serialize_collection(invoices))
        except StorageError as e:
            self.last_save_ok = False
            logger.error("save_failed", key=self.key, error=str(e))
            await self._audit(AuditEventBuilder.storage_save_failed(self.key, str(e)))
            return False

        self.last_save_ok = True
        await self._audit(AuditEventBuilder.storage_saved(self.key, len(invoices)))
        return True
