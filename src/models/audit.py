"""
Audit Models for Invoice Pro

Every user intent and every recovered failure produces an AuditEvent.
This provides:
1. A trail of what happened to each invoice in a session
2. Debugging information when storage or export goes wrong
3. The non-blocking notifications shown in the UI

DESIGN DECISION: Audit events are append-only. They are never edited.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Editing lifecycle
    DRAFT_CREATED = "draft_created"
    INVOICE_OPENED = "invoice_opened"
    EDIT_CANCELLED = "edit_cancelled"
    INVOICE_NOT_FOUND = "invoice_not_found"
    INVALID_TRANSITION = "invalid_transition"

    # Collection mutations
    INVOICE_CREATED = "invoice_created"
    INVOICE_UPDATED = "invoice_updated"
    INVOICE_DELETED = "invoice_deleted"
    DELETE_CANCELLED = "delete_cancelled"

    # Persistence
    STORAGE_LOADED = "storage_loaded"
    STORAGE_LOAD_FAILED = "storage_load_failed"
    STORAGE_RECORD_REJECTED = "storage_record_rejected"
    STORAGE_SAVED = "storage_saved"
    STORAGE_SAVE_FAILED = "storage_save_failed"

    # Export
    EXPORT_COMPLETED = "export_completed"
    EXPORT_FAILED = "export_failed"

    # Offline cache
    ASSET_CACHE_INSTALLED = "asset_cache_installed"
    ASSET_CACHE_INSTALL_FAILED = "asset_cache_install_failed"
    ASSET_CACHE_ACTIVATED = "asset_cache_activated"
    ASSET_FETCH_FAILED = "asset_fetch_failed"

    # System events
    SYSTEM_ERROR = "system_error"


DESCRIPTION_MAX_LENGTH = 500


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is a plain string because invoice ids are opaque strings,
    not UUIDs.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'invoice', 'collection', 'asset')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one editing session)"
    )

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @field_validator("description", mode="before")
    @classmethod
    def truncate_description(cls, value):
        # User text (refs, file names, urls) can be arbitrarily long
        if isinstance(value, str) and len(value) > DESCRIPTION_MAX_LENGTH:
            return value[:DESCRIPTION_MAX_LENGTH - 3] + "..."
        return value

    @property
    def is_failure(self) -> bool:
        return self.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.invoice_saved(invoice_id, ref, created=True)
        event = AuditEventBuilder.storage_save_failed(error_message)
    """

    @staticmethod
    def draft_created(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_CREATED,
            entity_type="invoice",
            correlation_id=correlation_id,
            description="New invoice draft opened",
            is_user_action=True,
        )

    @staticmethod
    def invoice_opened(
        invoice_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_OPENED,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Invoice {invoice_id} opened for editing",
            is_user_action=True,
        )

    @staticmethod
    def edit_cancelled(
        invoice_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_CANCELLED,
            entity_type="invoice",
            entity_id=invoice_id or None,
            correlation_id=correlation_id,
            description="Editing cancelled, working copy discarded",
            is_user_action=True,
        )

    @staticmethod
    def invoice_not_found(invoice_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_NOT_FOUND,
            entity_type="invoice",
            entity_id=invoice_id,
            description=f"Cannot {action}: invoice {invoice_id} is not in the collection",
            details={"action": action},
        )

    @staticmethod
    def invalid_transition(intent: str, state: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVALID_TRANSITION,
            severity=AuditSeverity.WARNING,
            description=f"Ignored '{intent}' while {state}",
            details={"intent": intent, "state": state},
        )

    @staticmethod
    def invoice_saved(
        invoice_id: str,
        ref: str,
        total: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.INVOICE_CREATED if created
                else AuditEventType.INVOICE_UPDATED
            ),
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Invoice {'created' if created else 'updated'}: {ref or 'N/A'} - {total}",
            details={"ref": ref, "total": total},
            is_user_action=True,
        )

    @staticmethod
    def invoice_deleted(invoice_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_DELETED,
            entity_type="invoice",
            entity_id=invoice_id,
            description=f"Invoice {invoice_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def delete_cancelled(invoice_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_CANCELLED,
            entity_type="invoice",
            entity_id=invoice_id,
            description=f"Deletion of invoice {invoice_id} was not confirmed",
            is_user_action=True,
        )

    @staticmethod
    def storage_loaded(count: int, rejected: int, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_LOADED,
            entity_type="collection",
            entity_id=key,
            description=f"Loaded {count} invoices ({rejected} rejected)",
            details={"count": count, "rejected": rejected},
        )

    @staticmethod
    def storage_load_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=key,
            description="Stored invoices could not be read; starting empty",
            error_message=error_message,
        )

    @staticmethod
    def storage_record_rejected(
        key: str,
        record_index: int,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_RECORD_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="collection",
            entity_id=key,
            description=f"Stored record #{record_index} rejected with {len(issues)} issues",
            details={"record_index": record_index, "issues": issues},
        )

    @staticmethod
    def storage_saved(key: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="collection",
            entity_id=key,
            description=f"Flushed {count} invoices",
            details={"count": count},
        )

    @staticmethod
    def storage_save_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=key,
            description="Invoices could not be saved; changes are kept for this session only",
            error_message=error_message,
        )

    @staticmethod
    def export_completed(invoice_id: str, filename: str, size: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="invoice",
            entity_id=invoice_id or None,
            description=f"Exported {filename}",
            details={"filename": filename, "size_bytes": size},
            is_user_action=True,
        )

    @staticmethod
    def export_failed(invoice_id: str, filename: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="invoice",
            entity_id=invoice_id or None,
            description=f"Could not generate {filename}",
            error_message=error_message,
            details={"filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def asset_cache_installed(cache_name: str, assets: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_CACHE_INSTALLED,
            entity_type="asset_cache",
            entity_id=cache_name,
            description=f"Pre-cached {len(assets)} shell assets",
            details={"assets": assets},
        )

    @staticmethod
    def asset_cache_install_failed(
        cache_name: str,
        asset: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_CACHE_INSTALL_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="asset_cache",
            entity_id=cache_name,
            description=f"Install failed while fetching {asset}",
            error_message=error_message,
            details={"asset": asset},
        )

    @staticmethod
    def asset_cache_activated(
        cache_name: str,
        deleted: list[str],
        claimed: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_CACHE_ACTIVATED,
            entity_type="asset_cache",
            entity_id=cache_name,
            description=f"Activated; removed {len(deleted)} old caches, claimed {claimed} clients",
            details={"deleted": deleted, "claimed": claimed},
        )

    @staticmethod
    def asset_fetch_failed(url: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="asset",
            entity_id=url,
            description=f"Fetching failed: {url}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
