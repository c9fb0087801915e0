"""
Data Models Package

This package contains the Pydantic models used in Invoice Pro and the pure
functions that compute derived invoice values.
"""

from src.models.invoice import (
    IdGenerator,
    Invoice,
    InvoiceItem,
    ValidationIssue,
    ValidationResult,
    add_item,
    coerce_numeric,
    format_amount,
    invoice_total,
    line_amount,
    new_draft,
    new_item,
    remove_item,
    renumber,
    today_iso,
    update_item,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Invoice models
    "IdGenerator",
    "Invoice",
    "InvoiceItem",
    "ValidationIssue",
    "ValidationResult",
    # Invoice functions
    "add_item",
    "coerce_numeric",
    "format_amount",
    "invoice_total",
    "line_amount",
    "new_draft",
    "new_item",
    "remove_item",
    "renumber",
    "today_iso",
    "update_item",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
