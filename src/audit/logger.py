"""
Audit Logger

Every user intent and every recovered failure is logged.
This provides:
1. Traceability of what happened to each invoice
2. Debugging capability for storage, export and cache failures
3. The notification feed the UI shows without blocking the user

The audit logger:
- Is async so it can sit in the same flows as storage and network calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Keeps a bounded in-memory history for the current session
"""

import logging
import sys
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.config import get_settings
from src.models.audit import AuditEvent, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging and structlog for local JSON logs.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().app.log_level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory history (for UI notifications)
    """

    def __init__(self, history_size: Optional[int] = None):
        """
        Initialize audit logger.

        Args:
            history_size: How many events to keep in memory.
                         Defaults to the app setting.
        """
        size = history_size or get_settings().app.audit_history_size
        self._history: deque[AuditEvent] = deque(maxlen=size)
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be recorded. Never raises.
        """
        return self.record(event)

    def record(self, event: AuditEvent) -> bool:
        """Synchronous form of log() for callers outside a coroutine."""
        try:
            self._history.append(event)
            log_dict = event.to_log_dict()

            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
            return True
        except Exception as e:
            # Logging must never break the main flow
            logging.getLogger(__name__).error("audit logging failed: %s", e)
            return False

    def recent_events(self, limit: int = 20) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._history)
        events.reverse()
        return events[:limit]

    def recent_failures(self, limit: int = 5) -> list[AuditEvent]:
        """Most recent error-level events, newest first."""
        failures = [event for event in reversed(self._history) if event.is_failure]
        return failures[:limit]

    def clear(self) -> None:
        self._history.clear()


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when an editing session starts. Pass it through
    every event produced until the working copy is saved or discarded.
    """
    return uuid4()
