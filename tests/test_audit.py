"""Tests for the audit logger."""

from src.audit import AuditLogger, create_correlation_id
from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


class TestAuditLogger:

    def test_log_keeps_history_newest_first(self, event_loop):
        async def scenario():
            audit = AuditLogger(history_size=10)
            await audit.log(AuditEventBuilder.invoice_deleted("1"))
            await audit.log(AuditEventBuilder.invoice_deleted("2"))

            assert [event.entity_id for event in audit.recent_events()] == ["2", "1"]

        event_loop.run_until_complete(scenario())

    def test_history_is_bounded(self, event_loop):
        async def scenario():
            audit = AuditLogger(history_size=10)
            for index in range(15):
                await audit.log(AuditEventBuilder.invoice_deleted(str(index)))

            events = audit.recent_events(limit=100)
            assert len(events) == 10
            assert events[-1].entity_id == "5"

        event_loop.run_until_complete(scenario())

    def test_recent_failures_only_errors(self, event_loop):
        async def scenario():
            audit = AuditLogger(history_size=10)
            await audit.log(AuditEventBuilder.storage_save_failed("invoices", "full"))
            await audit.log(AuditEventBuilder.invoice_deleted("1"))
            await audit.log(AuditEventBuilder.export_failed("1", "invoice-1.pdf", "boom"))

            failures = audit.recent_failures()
            assert [event.event_type for event in failures] == [
                AuditEventType.EXPORT_FAILED,
                AuditEventType.STORAGE_SAVE_FAILED,
            ]
            assert len(audit.recent_failures(limit=1)) == 1

        event_loop.run_until_complete(scenario())

    def test_log_returns_true(self, event_loop):
        async def scenario():
            audit = AuditLogger(history_size=10)
            event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
            assert await audit.log(event) is True

        event_loop.run_until_complete(scenario())

    def test_clear(self, event_loop):
        async def scenario():
            audit = AuditLogger(history_size=10)
            await audit.log(AuditEventBuilder.invoice_deleted("1"))
            audit.clear()
            assert audit.recent_events() == []

        event_loop.run_until_complete(scenario())

    def test_record_without_event_loop(self):
        audit = AuditLogger(history_size=10)
        assert audit.record(AuditEventBuilder.invalid_transition("add_item", "listing")) is True
        assert audit.recent_events()[0].event_type == AuditEventType.INVALID_TRANSITION

    def test_default_history_size_from_settings(self):
        audit = AuditLogger()
        assert audit._history.maxlen == 200

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()
