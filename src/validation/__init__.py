"""Validation of persisted invoice data."""

from src.validation.validator import (
    LEGACY_SCHEMA_VERSION,
    SCHEMA_VERSION,
    InvoiceRecordValidator,
)

__all__ = [
    "InvoiceRecordValidator",
    "LEGACY_SCHEMA_VERSION",
    "SCHEMA_VERSION",
]
