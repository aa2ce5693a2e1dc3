"""
Audit Logger

Writes sync-layer AuditEvents to the structured log and to any registered
sinks. The logger:
- Is synchronous: the sync layer calls it from cache reads and state
  commits that must not suspend
- Never raises because a sink failed
"""

import logging
from collections import deque
from typing import Optional, Protocol

import structlog

from fintra.models.audit import AuditEvent, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for JSON output through the stdlib logging tree."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
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


class AuditSink(Protocol):
    """Anything that can receive audit events."""

    def append_event(self, event: AuditEvent) -> None:
        ...


class RecentEventsSink:
    """Keeps the most recent events in memory, newest last."""

    def __init__(self, maxlen: int = 200):
        self._events: deque[AuditEvent] = deque(maxlen=maxlen)

    def append_event(self, event: AuditEvent) -> None:
        self._events.append(event)

    def recent(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._events))
        return events[:limit] if limit is not None else events


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Registered sinks (for the activity panel)
    """

    def __init__(self, sinks: Optional[list[AuditSink]] = None):
        self._sinks: list[AuditSink] = list(sinks or [])
        self._logger = structlog.get_logger("fintra.audit")

    def add_sink(self, sink: AuditSink) -> None:
        self._sinks.append(sink)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if every sink accepted the event.
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        delivered = True
        for sink in self._sinks:
            try:
                sink.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                delivered = False
        return delivered
