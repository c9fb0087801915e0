"""PDF export of invoices."""

from src.services.export.exporter import ExportResult, InvoiceExporter, export_filename
from src.services.export.renderer import (
    ExportError,
    InvoiceRendererInterface,
    PillowInvoiceRenderer,
)

__all__ = [
    "ExportError",
    "ExportResult",
    "InvoiceExporter",
    "InvoiceRendererInterface",
    "PillowInvoiceRenderer",
    "export_filename",
]
