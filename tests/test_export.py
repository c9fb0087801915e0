"""Tests for PDF export."""

import asyncio
import threading

import pytest

from src.config import CompanySettings, ExportSettings
from src.models.audit import AuditEventType
from src.models.invoice import Invoice, InvoiceItem
from src.services.export import (
    ExportError,
    InvoiceExporter,
    InvoiceRendererInterface,
    PillowInvoiceRenderer,
    export_filename,
)


class FailingRenderer(InvoiceRendererInterface):

    def render(self, invoice):
        raise ExportError("canvas exploded")


class BlockingRenderer(InvoiceRendererInterface):
    """Holds the render until the test releases it."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def render(self, invoice):
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        return b"%PDF-1.4 test"


@pytest.fixture
def renderer():
    return PillowInvoiceRenderer(
        export_settings=ExportSettings(scale=1.0),
        company=CompanySettings(),
    )


class TestFilename:

    def test_uses_reference(self):
        assert export_filename(Invoice(ref="REW-001")) == "invoice-REW-001.pdf"

    def test_empty_reference_uses_placeholder(self):
        assert export_filename(Invoice(ref="")) == "invoice-new.pdf"

    def test_unsafe_characters_are_replaced(self):
        assert export_filename(Invoice(ref='A/B:C*D')) == "invoice-A_B_C_D.pdf"


class TestPillowInvoiceRenderer:

    def test_renders_pdf(self, renderer, sample_invoice):
        content = renderer.render(sample_invoice)
        assert content.startswith(b"%PDF")

    def test_fixed_width(self, renderer, sample_invoice):
        image = renderer.render_image(sample_invoice)
        assert image.width == 1024

    def test_scale_multiplies_size(self, sample_invoice):
        scaled = PillowInvoiceRenderer(export_settings=ExportSettings(scale=2.0), company=CompanySettings())
        assert scaled.render_image(sample_invoice).width == 2048

    def test_page_grows_with_items(self, renderer):
        short = Invoice(id="1", items=[InvoiceItem(id="a")])
        long = Invoice(id="2", items=[InvoiceItem(id=str(i)) for i in range(30)])
        assert renderer.render_image(long).height > renderer.render_image(short).height

    def test_long_text_is_truncated_not_fatal(self, renderer):
        invoice = Invoice(
            id="1",
            recipient="M" * 500,
            items=[InvoiceItem(id="a", description="x" * 1000, qty=123456789.125, unit_rate=-3)],
        )
        assert renderer.render(invoice).startswith(b"%PDF")

    def test_empty_invoice_renders(self, renderer):
        assert renderer.render(Invoice()).startswith(b"%PDF")


class TestInvoiceExporter:

    def test_successful_export(self, event_loop, renderer, sample_invoice, audit_logger):
        async def scenario():
            exporter = InvoiceExporter(renderer=renderer, audit_logger=audit_logger)

            result = await exporter.export(sample_invoice)

            assert result.success
            assert result.filename == "invoice-REW-001.pdf"
            assert result.size_bytes > 0
            assert result.mime_type == "application/pdf"
            assert not exporter.in_progress
            assert audit_logger.recent_events(1)[0].event_type == AuditEventType.EXPORT_COMPLETED

        event_loop.run_until_complete(scenario())

    def test_failure_is_reported_and_flag_cleared(self, event_loop, sample_invoice, audit_logger):
        """A failed render never leaves the exporter stuck in progress."""
        async def scenario():
            exporter = InvoiceExporter(renderer=FailingRenderer(), audit_logger=audit_logger)

            result = await exporter.export(sample_invoice)

            assert result.success is False
            assert result.error == "canvas exploded"
            assert result.content is None
            assert not exporter.in_progress
            assert audit_logger.recent_failures()[0].event_type == AuditEventType.EXPORT_FAILED

        event_loop.run_until_complete(scenario())

    def test_can_export_again_after_failure(self, event_loop, sample_invoice):
        async def scenario():
            exporter = InvoiceExporter(renderer=FailingRenderer())
            await exporter.export(sample_invoice)
            assert await exporter.export(sample_invoice) is not None

        event_loop.run_until_complete(scenario())

    def test_duplicate_export_is_refused(self, event_loop, sample_invoice):
        async def scenario():
            renderer = BlockingRenderer()
            exporter = InvoiceExporter(renderer=renderer)

            task = asyncio.create_task(exporter.export(sample_invoice))
            while not renderer.started.is_set():
                await asyncio.sleep(0.01)

            assert exporter.in_progress
            assert await exporter.export(sample_invoice) is None

            renderer.release.set()
            result = await task
            assert result.success
            assert renderer.calls == 1
            assert not exporter.in_progress

        event_loop.run_until_complete(scenario())

    def test_custom_placeholder(self, event_loop):
        async def scenario():
            exporter = InvoiceExporter(renderer=BlockingRenderer(), filename_placeholder="draft")
            exporter._renderer.release.set()
            result = await exporter.export(Invoice())
            assert result.filename == "invoice-draft.pdf"

        event_loop.run_until_complete(scenario())
