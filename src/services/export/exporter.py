"""
Invoice Export Service

Wraps a renderer with the behaviour the form needs around a download:
- only one export runs at a time (in_progress)
- the flag is always cleared, whether rendering worked or not
- failures come back as a result the UI can show, never as an exception
"""

import asyncio
import re
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from src.audit import AuditLogger
from src.config import get_settings
from src.models.audit import AuditEventBuilder
from src.models.invoice import Invoice
from src.services.export.renderer import InvoiceRendererInterface, PillowInvoiceRenderer

logger = structlog.get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def export_filename(invoice: Invoice, placeholder: str = "new") -> str:
    """invoice-{ref}.pdf, or invoice-{placeholder}.pdf when ref is empty."""
    ref = _UNSAFE_FILENAME_CHARS.sub("_", invoice.ref) if invoice.ref else placeholder
    return f"invoice-{ref}.pdf"


class ExportResult(BaseModel):
    """Outcome of one export."""

    success: bool
    filename: str
    content: Optional[bytes] = Field(default=None, repr=False)
    error: Optional[str] = None
    mime_type: str = "application/pdf"

    @property
    def size_bytes(self) -> int:
        return len(self.content) if self.content else 0


class InvoiceExporter:
    """
    Exports invoices to PDF.

    Usage:
        exporter = InvoiceExporter()
        result = await exporter.export(invoice)
        if result and result.success:
            offer_download(result.filename, result.content)
    """

    def __init__(
        self,
        renderer: Optional[InvoiceRendererInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        filename_placeholder: Optional[str] = None,
    ):
        self._renderer = renderer or PillowInvoiceRenderer()
        self._audit_logger = audit_logger
        self._placeholder = filename_placeholder or get_settings().export.filename_placeholder
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def export(self, invoice: Invoice) -> Optional[ExportResult]:
        """
        Render an invoice to PDF.

        Returns:
            ExportResult, or None if another export is still running
        """
        if self._in_progress:
            logger.info("export_skipped", reason="already_in_progress")
            return None

        filename = export_filename(invoice, self._placeholder)
        self._in_progress = True
        try:
            content = await asyncio.to_thread(self._renderer.render, invoice)
        except Exception as e:
            logger.error("export_failed", invoice_id=invoice.id, filename=filename, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.export_failed(invoice.id, filename, str(e))
                )
            return ExportResult(success=False, filename=filename, error=str(e))
        finally:
            self._in_progress = False

        logger.info("export_completed", invoice_id=invoice.id, filename=filename, size_bytes=len(content))
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.export_completed(invoice.id, filename, len(content))
            )
        return ExportResult(success=True, filename=filename, content=content)
